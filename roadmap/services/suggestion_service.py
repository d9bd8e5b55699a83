"""
Suggestion service: the admin-side board (suggestions and categories).
"""
from flask import current_app
from sqlalchemy import func

from roadmap.errors import ForbiddenError, NotFoundError, ValidationError
from roadmap.extensions import db
from roadmap.models.organization import Organization
from roadmap.models.suggestion import Category, Suggestion, Vote
from roadmap.models.user import User, UserRole
from roadmap.utils.email import send_new_suggestion_email

ADMIN_ONLY_FIELDS = ('status', 'sprint')


class SuggestionService:
    """Service for an organization's suggestions and categories."""

    # ── Suggestions ─────────────────────────────────────────

    @staticmethod
    def get_suggestion(organization_id, suggestion_id) -> Suggestion:
        suggestion = db.session.get(Suggestion, suggestion_id)
        if suggestion is None or suggestion.organization_id != organization_id:
            raise NotFoundError('Suggestion not found.')
        return suggestion

    @staticmethod
    def list_suggestions(organization_id, viewer_id=None, status=None, category_id=None):
        """Suggestions newest first, each with its vote statistics.

        Returns:
            List of (Suggestion, stats) where stats holds vote_count,
            impact_score (sum of voters' customer_value), user_has_voted
            and voted_by.
        """
        query = Suggestion.query.filter_by(organization_id=organization_id)
        if status and status != 'all':
            query = query.filter(Suggestion.status == status)
        if category_id and category_id != 'all':
            query = query.filter(Suggestion.category_id == category_id)
        suggestions = query.order_by(Suggestion.created_at.desc()).all()

        voters = {}
        if suggestions:
            rows = db.session.query(Vote.suggestion_id, User.id, User.customer_value).join(
                User, Vote.user_id == User.id,
            ).filter(Vote.suggestion_id.in_([s.id for s in suggestions])).all()
            for suggestion_id, user_id, value in rows:
                voters.setdefault(suggestion_id, []).append((user_id, value))

        results = []
        for suggestion in suggestions:
            votes = voters.get(suggestion.id, [])
            voted_by = [user_id for user_id, _ in votes]
            results.append((suggestion, {
                'vote_count': len(votes),
                'impact_score': float(sum((value or 0) for _, value in votes)),
                'user_has_voted': viewer_id in voted_by,
                'voted_by': voted_by,
            }))
        return results

    @staticmethod
    def create_suggestion(author: User, title, description=None, category_id=None, notify=True):
        """Create a suggestion and notify the organization's admins.

        The notification is fire-and-forget; a mail failure never affects
        the created suggestion.
        """
        title = (title or '').strip()
        if not title:
            raise ValidationError('Title is required.')

        if category_id:
            SuggestionService.get_category(author.organization_id, category_id)

        suggestion = Suggestion(
            organization_id=author.organization_id,
            category_id=category_id or None,
            created_by=author.id,
            title=title,
            description=description,
        )
        db.session.add(suggestion)
        db.session.commit()

        if notify:
            SuggestionService.notify_admins(suggestion, author)
        return suggestion

    @staticmethod
    def notify_admins(suggestion: Suggestion, author: User):
        org = db.session.get(Organization, suggestion.organization_id)
        admin_emails = [
            email for (email,) in db.session.query(User.email).filter(
                User.organization_id == suggestion.organization_id,
                User.role == UserRole.ADMIN,
            )
        ]
        try:
            send_new_suggestion_email(admin_emails, suggestion, org, author.name)
        except Exception as e:
            current_app.logger.error(f'Failed to send new_suggestion notification: {e}')

    @staticmethod
    def update_suggestion(actor: User, suggestion_id, changes: dict) -> Suggestion:
        """Apply a partial update. Only admins may change status or sprint."""
        suggestion = SuggestionService.get_suggestion(actor.organization_id, suggestion_id)

        if any(field in changes for field in ADMIN_ONLY_FIELDS) and not actor.is_admin:
            raise ForbiddenError('Admin access required to change status or sprint.')

        updatable = ('title', 'description', 'category_id', 'status', 'sprint', 'requirements')
        if not any(field in changes for field in updatable):
            raise ValidationError('No valid updates provided.')

        if 'title' in changes:
            title = (changes['title'] or '').strip()
            if not title:
                raise ValidationError('Title cannot be empty.')
            suggestion.title = title
        if 'description' in changes:
            suggestion.description = changes['description']
        if 'category_id' in changes:
            if changes['category_id']:
                SuggestionService.get_category(actor.organization_id, changes['category_id'])
            suggestion.category_id = changes['category_id'] or None
        if 'status' in changes:
            if not changes['status']:
                raise ValidationError('Status cannot be empty.')
            suggestion.status = changes['status']
        if 'sprint' in changes:
            suggestion.sprint = changes['sprint'] or None
        if 'requirements' in changes:
            suggestion.requirements = changes['requirements']

        db.session.commit()
        return suggestion

    @staticmethod
    def delete_suggestion(actor: User, suggestion_id):
        if not actor.is_admin:
            raise ForbiddenError('Admin access required.')
        suggestion = SuggestionService.get_suggestion(actor.organization_id, suggestion_id)
        db.session.delete(suggestion)
        db.session.commit()

    # ── Categories ──────────────────────────────────────────

    @staticmethod
    def get_category(organization_id, category_id) -> Category:
        category = db.session.get(Category, category_id)
        if category is None or category.organization_id != organization_id:
            raise NotFoundError('Category not found.')
        return category

    @staticmethod
    def list_categories(organization_id):
        """Categories in display order, as (Category, suggestion_count)."""
        return db.session.query(Category, func.count(Suggestion.id)).outerjoin(
            Suggestion, Suggestion.category_id == Category.id,
        ).filter(
            Category.organization_id == organization_id,
        ).group_by(Category.id).order_by(Category.sort_order, Category.name).all()

    @staticmethod
    def create_category(organization_id, name, color=None) -> Category:
        name = (name or '').strip()
        if not name:
            raise ValidationError('Category name is required.')

        duplicate = Category.query.filter(
            Category.organization_id == organization_id,
            func.lower(Category.name) == name.lower(),
        ).first()
        if duplicate:
            raise ValidationError('Category already exists.')

        max_order = db.session.query(func.coalesce(func.max(Category.sort_order), 0)).filter(
            Category.organization_id == organization_id,
        ).scalar()

        category = Category(
            organization_id=organization_id,
            name=name,
            color=color or '#6b7280',
            sort_order=max_order + 1,
        )
        db.session.add(category)
        db.session.commit()
        return category

    @staticmethod
    def update_category(organization_id, category_id, changes: dict) -> Category:
        category = SuggestionService.get_category(organization_id, category_id)
        if not any(field in changes for field in ('name', 'color', 'sort_order')):
            raise ValidationError('No valid updates provided.')

        if 'name' in changes:
            name = (changes['name'] or '').strip()
            if not name:
                raise ValidationError('Category name is required.')
            category.name = name
        if 'color' in changes and changes['color']:
            category.color = changes['color']
        if 'sort_order' in changes:
            try:
                category.sort_order = int(changes['sort_order'])
            except (TypeError, ValueError):
                raise ValidationError('sortOrder must be an integer.')

        db.session.commit()
        return category

    @staticmethod
    def delete_category(organization_id, category_id):
        """Delete a category; its suggestions become uncategorized."""
        category = SuggestionService.get_category(organization_id, category_id)
        Suggestion.query.filter_by(category_id=category.id).update(
            {Suggestion.category_id: None}, synchronize_session=False,
        )
        db.session.delete(category)
        db.session.commit()

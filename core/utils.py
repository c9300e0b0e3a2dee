def get_current_business(user):
    """
    Return the primary Business for this user, or None.
    """
    if not user or not getattr(user, "is_authenticated", False):
        return None
    from .models import Business  # local import to avoid circular deps

    return Business.objects.filter(owner_user=user).order_by("id").first()

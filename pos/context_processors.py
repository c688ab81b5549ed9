def user_role_context(request):
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return {
            "user_role": user.role_label,
            "user_features": user.get_feature_permissions(),
        }
    return {"user_role": None, "user_features": []}

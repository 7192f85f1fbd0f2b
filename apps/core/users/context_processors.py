def role_context(request):
    user = getattr(request, 'user', None)
    if not user or not user.is_authenticated:
        return {}

    role = user.role
    return {
        'is_admin_user': role == 'admin',
        'can_manage_students': role in {'admin', 'clerk'},
        'can_collect_fees': role in {'admin', 'clerk'},
        'can_view_reports': role in {'admin', 'clerk'},
        'can_view_collections': role in {'admin', 'clerk', 'sarvodaya'},
        'is_class_teacher': role == 'teacher',
    }

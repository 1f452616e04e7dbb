"""
Role and permission catalogue for office users.

Permissions are plain "resource:action" pairs stored as a map of
resource -> [actions]. Predefined roles carry a fixed map; ``custom``
users carry whatever map an administrator assigned them.
"""

CRUD = ['create', 'read', 'update', 'delete']

RESOURCES = ['dashboard', 'users', 'students', 'staff', 'classes', 'fees', 'finance', 'configuration']

PREDEFINED_ROLES = {
    'admin': {
        'name': 'Administrator',
        'permissions': {
            'dashboard': ['read'],
            'users': list(CRUD),
            'students': list(CRUD),
            'staff': list(CRUD),
            'classes': list(CRUD),
            'fees': list(CRUD),
            'finance': list(CRUD),
            'configuration': list(CRUD),
        },
    },
    'principal': {
        'name': 'Principal',
        'permissions': {
            'classes': list(CRUD),
            'fees': list(CRUD),
            'staff': list(CRUD),
            'students': list(CRUD),
            # No delete on finance records
            'finance': ['create', 'read', 'update'],
        },
    },
    'staff': {
        'name': 'Staff',
        'permissions': {
            'students': list(CRUD),
            'classes': ['read'],
            # Fee collection only
            'fees': ['create', 'read', 'update'],
        },
    },
}

_DESCRIPTIONS = {
    'dashboard': 'dashboard',
    'users': 'users',
    'students': 'students',
    'staff': 'staff',
    'classes': 'classes',
    'fees': 'fees',
    'finance': 'financial records',
    'configuration': 'configurations',
}

_VERBS = {'create': 'Create', 'read': 'View', 'update': 'Update', 'delete': 'Delete'}


def _build_catalogue():
    catalogue = [{'resource': 'dashboard', 'action': 'read', 'description': 'View dashboard'}]
    for resource in RESOURCES[1:]:
        for action in CRUD:
            catalogue.append({
                'resource': resource,
                'action': action,
                'description': f"{_VERBS[action]} {_DESCRIPTIONS[resource]}",
            })
    return catalogue


ALL_PERMISSIONS = _build_catalogue()


def is_known_permission(resource, action):
    return any(p['resource'] == resource and p['action'] == action for p in ALL_PERMISSIONS)


def has_permission(user_permissions, resource, action):
    """True when the permission map grants ``action`` on ``resource``."""
    if not user_permissions:
        return False
    return action in (user_permissions.get(resource) or [])


def format_permissions_for_user(permissions):
    """
    Turn a list of {'resource': ..., 'action': ...} entries into the
    resource -> [actions] map stored on the user. Unknown pairs and
    duplicates are dropped.
    """
    formatted = {}
    for perm in permissions or []:
        resource = perm.get('resource')
        action = perm.get('action')
        if not is_known_permission(resource, action):
            continue
        actions = formatted.setdefault(resource, [])
        if action not in actions:
            actions.append(action)
    return formatted


def permissions_for_role(role, custom_permissions=None):
    """Effective permission map for a role."""
    if role in PREDEFINED_ROLES:
        return {resource: list(actions) for resource, actions in PREDEFINED_ROLES[role]['permissions'].items()}
    return dict(custom_permissions or {})

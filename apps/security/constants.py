"""
Platform constants for privileges, depths and access rights.
"""
import uuid

# Privilege depth flags (OR-able)
BASIC = 1
LOCAL = 2
DEEP = 4
GLOBAL = 8

DEPTH_NAMES = {
    BASIC: 'Basic',
    LOCAL: 'Local',
    DEEP: 'Deep',
    GLOBAL: 'Global',
}

ALL_DEPTHS = BASIC | LOCAL | DEEP | GLOBAL

# Access rights (platform bit values)
READ = 1
WRITE = 2
APPEND = 4
APPEND_TO = 16
CREATE = 32
DELETE = 65536
SHARE = 262144
ASSIGN = 524288

# Right -> word used in privilege names, in catalog order
ACCESS_RIGHT_NAMES = {
    CREATE: 'Create',
    READ: 'Read',
    WRITE: 'Write',
    DELETE: 'Delete',
    APPEND: 'Append',
    APPEND_TO: 'AppendTo',
    ASSIGN: 'Assign',
    SHARE: 'Share',
}

ACCESS_RIGHT_CHOICES = [(value, name) for value, name in ACCESS_RIGHT_NAMES.items()]

ALL_ACCESS_RIGHTS = 0
for _right in ACCESS_RIGHT_NAMES:
    ALL_ACCESS_RIGHTS |= _right

ADMINISTRATOR_ROLE_ID = uuid.UUID('c52d9ca4-3d13-43e7-9c23-d6c6f5fdd425')
ADMINISTRATOR_ROLE_NAME = 'System Administrator'

ACT_ON_BEHALF_PRIVILEGE = 'prvActOnBehalfOfAnotherUser'

# Organization-owned platform tables: privileges allow Global depth only,
# and reads are never record-scoped.
SYSTEM_ENTITIES = frozenset({
    'organization',
    'businessunit',
    'systemuser',
    'team',
    'role',
    'privilege',
    'roleprivileges',
    'entitydefinition',
    'attribute',
    'solution',
    'publisher',
    'webresource',
    'sitemap',
    'appmodule',
    'appmodulecomponent',
    'savedquery',
    'systemform',
})

# Relationships whose association is a role assignment
ROLE_ASSIGNMENT_RELATIONSHIPS = {
    'systemuserroles_association': 'systemuser',
    'teamroles_association': 'team',
}

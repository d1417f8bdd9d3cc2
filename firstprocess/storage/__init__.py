from firstprocess.storage.org import Org
from firstprocess.storage.org_invitation import OrgInvitation
from firstprocess.storage.org_member import OrgMember
from firstprocess.storage.org_subscription import OrgSubscription

__all__ = ['Org', 'OrgInvitation', 'OrgMember', 'OrgSubscription']

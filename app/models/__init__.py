from .user import User, GlobalRole
from .project import Project, ProjectMember, ProjectRole
from .document import PlanningDocument, DocumentVersion, DocumentStatus
from .approval_history import ApprovalHistoryEntry, ApprovalAction
from .conversation import AIConversation

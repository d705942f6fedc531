from eiga.models.user import User  # noqa: F401
from eiga.models.invite import InviteCode  # noqa: F401
from eiga.models.comment import Comment  # noqa: F401
from eiga.models.reaction import Reaction, ReactionType  # noqa: F401

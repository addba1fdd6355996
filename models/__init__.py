"""Data models used by the application.

Split into:
- `api_models`: Pydantic models used for request/response validation
- `domain_models`: typed dicts, proof status variants, change sets and
  engine outcomes used in business logic

Import submodules to make them available as `models.api_models`.
"""

from . import api_models, domain_models

# Re-export selected API models (Pydantic models used for request/response)
from .api_models import (
	CreatePlayerRequest,
	JoinGameRequest,
	SubmitProofRequest,
	ReviewProofRequest,
	PlayerNameRequest,
	SetBountyRequest,
	SetGamePinRequest,
	ErrorResponse,
)

# Re-export domain models
from .domain_models import (
	Player,
	GameState,
	Bounty,
	Announcement,
	Proof,
	Pending,
	Verified,
	Rejected,
	ChangeSet,
	Snapshot,
	Plan,
)

__all__ = [
	# submodules
	"api_models",
	"domain_models",
	# api models
	"CreatePlayerRequest",
	"JoinGameRequest",
	"SubmitProofRequest",
	"ReviewProofRequest",
	"PlayerNameRequest",
	"SetBountyRequest",
	"SetGamePinRequest",
	"ErrorResponse",
	# domain models
	"Player",
	"GameState",
	"Bounty",
	"Announcement",
	"Proof",
	"Pending",
	"Verified",
	"Rejected",
	"ChangeSet",
	"Snapshot",
	"Plan",
]

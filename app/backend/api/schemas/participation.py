from pydantic import Field
from typing import List, Literal, Optional

from ...models.db_models import NewProof, ParticipationDraft, DomainModel


class ParticipationCreateRequest(ParticipationDraft):
    """
    Body of a participation submission. Proof files are uploaded beforehand;
    only their metadata and URL are sent here.
    """
    proofs: List[NewProof] = Field(default_factory=list, description="At least one proof is required.")

    def to_draft(self) -> ParticipationDraft:
        return ParticipationDraft(**self.model_dump(exclude={"proofs"}))


class ReviewRequest(DomainModel):
    status: Literal["approved", "rejected"]
    feedback: Optional[str] = Field(None, description="Required when rejecting.")

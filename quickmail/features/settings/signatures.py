"""A user's signature collection."""

from typing import List, Optional

from quickmail.core.database import SignatureRepository
from quickmail.core.models import Signature, User
from quickmail.utils.errors import ValidationError


class SignatureBook:
    """Lists and edits the signatures owned by one user."""

    def __init__(self, signatures: SignatureRepository, owner: User):
        self.signatures = signatures
        self.owner = owner

    async def list_signatures(self) -> List[Signature]:
        """Signatures with the default first."""
        return await self.signatures.find_all(self.owner.id)

    async def default_id(self) -> int:
        return await self.signatures.find_default_id(self.owner.id)

    async def save(
        self, title: str, text: str, is_default: bool = False, signature_id: Optional[int] = None
    ) -> int:
        if not title or not title.strip():
            raise ValidationError("A signature needs a title")

        return await self.signatures.save(
            Signature(
                id=signature_id,
                owner_id=self.owner.id,
                title=title.strip(),
                text=text,
                is_default=is_default,
            )
        )

    async def delete(self, signature_id: int) -> None:
        await self.signatures.delete(signature_id, self.owner.id)

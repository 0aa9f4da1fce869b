"""
Contract: Proof Service

Proof generation and submission are external collaborators. The capture
flow treats both as opaque async calls that succeed or fail.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from passport_capture.core.entities.claims import Claims


@dataclass(frozen=True)
class ProofArtifact:
    hash: str
    clauses: list[str]
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class SubmissionReceipt:
    hash: str
    created_at: datetime = field(default_factory=datetime.utcnow)


class IProofService(ABC):
    """Port: Proof Service"""

    @abstractmethod
    async def generate(self, claims: Claims) -> ProofArtifact:
        """Produce a proof artifact and the satisfied clause ids."""
        ...

    @abstractmethod
    async def submit(self, proof: ProofArtifact) -> SubmissionReceipt:
        """Submit a proof artifact; returns the receipt hash."""
        ...

"""
Adapter: Simulated Proof Service.

Stands in for the external proof generator and ledger: the "proof" is a
random hash over the satisfied clause ids, submission returns a random
receipt hash after a short delay.
"""

import asyncio
import hashlib
import logging
import secrets

from passport_capture.core.entities.claims import Claims
from passport_capture.core.interfaces.proof_service import (
    IProofService,
    ProofArtifact,
    SubmissionReceipt,
)

logger = logging.getLogger(__name__)


class SimulatedProofService(IProofService):
    def __init__(self, delay_seconds: float = 0.0):
        self._delay = delay_seconds

    async def generate(self, claims: Claims) -> ProofArtifact:
        await asyncio.sleep(self._delay)
        clauses = claims.clauses
        digest = hashlib.sha256((secrets.token_hex(16) + "|".join(clauses)).encode()).hexdigest()
        logger.info(f"Proof generated: {digest[:12]}… clauses={clauses}")
        return ProofArtifact(hash=f"0x{digest}", clauses=clauses)

    async def submit(self, proof: ProofArtifact) -> SubmissionReceipt:
        await asyncio.sleep(self._delay)
        receipt = SubmissionReceipt(hash=f"0x{secrets.token_hex(32)}")
        logger.info(f"Proof {proof.hash[:14]} submitted: {receipt.hash[:14]}")
        return receipt

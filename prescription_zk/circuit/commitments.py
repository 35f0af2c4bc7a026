"""
One-way commitment primitives consumed by the circuit.

The circuit only relies on the contract ``commit(*field_elements) -> field
element``: deterministic, one-way and collision resistant. Two schemes are
provided:

- ``Sha3FieldCommitment``: SHA3-256 with domain separation, reduced into
  the field. Used by the in-process reference backend.
- ``NodePoseidonCommitment``: circomlib Poseidon evaluated by ``node`` with
  ``circomlibjs``. Required when proving with the compiled circom circuit,
  whose hasher gadgets are Poseidon.
"""

from __future__ import annotations

import functools
import hashlib
import json
import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Tuple

from .config import COMMITMENT_DOMAIN_SEPARATOR, DEFAULT_PROVER_TIMEOUT, node_binary
from .exceptions import ConfigurationError, ProofGenerationError
from .field import P, reduce

logger = logging.getLogger(__name__)


class CommitmentScheme(ABC):
    """Field-to-field one-way commitment."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier, recorded in the constraint system digest."""

    @abstractmethod
    def commit(self, *values: int) -> int:
        """Commit to one or more field elements."""

    def __call__(self, *values: int) -> int:
        return self.commit(*values)


class Sha3FieldCommitment(CommitmentScheme):
    """
    SHA3-256 commitment reduced modulo the field.

    The arity is hashed alongside the inputs so ``commit(a)`` and
    ``commit(a, 0)`` never collide.
    """

    def __init__(self, domain: bytes = COMMITMENT_DOMAIN_SEPARATOR):
        self._domain = domain

    @property
    def name(self) -> str:
        return "sha3-256-field"

    def commit(self, *values: int) -> int:
        if not values:
            raise ValueError("commit() needs at least one input")
        h = hashlib.sha3_256()
        h.update(self._domain)
        h.update(len(values).to_bytes(2, "big"))
        for value in values:
            h.update(reduce(value).to_bytes(32, "big"))
        return int.from_bytes(h.digest(), "big") % P


_POSEIDON_SCRIPT = """
const { buildPoseidon } = require("circomlibjs");
(async () => {
    const poseidon = await buildPoseidon();
    const inputs = JSON.parse(process.argv[1]).map((v) => BigInt(v));
    process.stdout.write(poseidon.F.toObject(poseidon(inputs)).toString());
})().catch((e) => { console.error(e.message || String(e)); process.exit(1); });
"""


class NodePoseidonCommitment(CommitmentScheme):
    """
    circomlib Poseidon, evaluated through ``node`` + ``circomlibjs``.

    Each distinct input tuple spawns one ``node`` process; results are cached.
    """

    def __init__(self, node_bin: str | None = None, cwd: str | None = None):
        self._node_bin = node_bin or node_binary()
        self._cwd = cwd

    @property
    def name(self) -> str:
        return "poseidon-bn128"

    def commit(self, *values: int) -> int:
        if not values:
            raise ValueError("commit() needs at least one input")
        return self._commit_cached(tuple(reduce(v) for v in values))

    @functools.lru_cache(maxsize=256)
    def _commit_cached(self, values: Tuple[int, ...]) -> int:
        payload = json.dumps([str(v) for v in values])
        logger.debug("poseidon(%d inputs) via %s", len(values), self._node_bin)
        try:
            result = subprocess.run(
                [self._node_bin, "-e", _POSEIDON_SCRIPT, payload],
                capture_output=True,
                text=True,
                check=False,
                cwd=self._cwd,
                timeout=DEFAULT_PROVER_TIMEOUT,
            )
        except FileNotFoundError as exc:
            raise ConfigurationError(f"node binary not found: {self._node_bin}") from exc
        if result.returncode != 0:
            stderr = result.stderr.strip() or "unknown poseidon error"
            raise ProofGenerationError(f"poseidon evaluation failed: {stderr}")
        return int(result.stdout.strip()) % P

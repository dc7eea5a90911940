# /services/prover.py
"""
Groth16 proof generation and verification through the snarkjs CLI.

Each prover call works in its own temporary directory that is removed on
every exit path, and is bounded by a timeout. Missing circuit files or a
missing snarkjs binary are reported as environment errors with a fix, never
as a failed proof.
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import config
from tools.errors import (
    CircuitArtifactsMissingError,
    ProverNotInstalledError,
    ProverProcessError,
    ProverTimeoutError,
)

logger = logging.getLogger(__name__)

_MAX_STDERR = 4000


@dataclass(frozen=True)
class CircuitArtifacts:
    name: str
    wasm_path: str
    zkey_path: str
    vkey_path: str

    def missing(self) -> List[str]:
        return [p for p in (self.wasm_path, self.zkey_path, self.vkey_path) if not os.path.isfile(p)]

    def ensure_present(self) -> None:
        missing = self.missing()
        if missing:
            raise CircuitArtifactsMissingError(
                f"Circuit '{self.name}' is missing artifacts: {', '.join(missing)}",
                remediation=(
                    "Compile the circuit with circom and run the snarkjs groth16 setup, "
                    f"or point CIRCUITS_DIR at a directory containing {self.name}.wasm, "
                    f"{self.name}_final.zkey and {self.name}_verification_key.json."
                ),
            )

    @classmethod
    def from_dir(cls, circuits_dir: str, name: str) -> "CircuitArtifacts":
        return cls(
            name=name,
            wasm_path=os.path.join(circuits_dir, f"{name}.wasm"),
            zkey_path=os.path.join(circuits_dir, f"{name}_final.zkey"),
            vkey_path=os.path.join(circuits_dir, f"{name}_verification_key.json"),
        )


@dataclass(frozen=True)
class Groth16Proof:
    pi_a: List[str]
    pi_b: List[List[str]]
    pi_c: List[str]
    protocol: str = "groth16"
    curve: str = "bn128"

    @classmethod
    def from_snarkjs(cls, data: Mapping[str, Any]) -> "Groth16Proof":
        try:
            return cls(
                pi_a=[str(v) for v in data["pi_a"]],
                pi_b=[[str(v) for v in pair] for pair in data["pi_b"]],
                pi_c=[str(v) for v in data["pi_c"]],
                protocol=data.get("protocol", "groth16"),
                curve=data.get("curve", "bn128"),
            )
        except (KeyError, TypeError) as e:
            raise ProverProcessError(f"Malformed snarkjs proof: {e}") from e

    def to_snarkjs(self) -> Dict[str, Any]:
        return {
            "pi_a": self.pi_a,
            "pi_b": self.pi_b,
            "pi_c": self.pi_c,
            "protocol": self.protocol,
            "curve": self.curve,
        }


@dataclass(frozen=True)
class ProofPoints:
    """Proof in the layout the Solidity verifier takes (G2 coordinates swapped)."""
    a: Tuple[int, int]
    b: Tuple[Tuple[int, int], Tuple[int, int]]
    c: Tuple[int, int]

    def as_tuple(self):
        return self.a, self.b, self.c

    def as_dict(self) -> Dict[str, Any]:
        return {
            "a": [str(v) for v in self.a],
            "b": [[str(v) for v in pair] for pair in self.b],
            "c": [str(v) for v in self.c],
        }


def proof_to_proof_points(proof: Groth16Proof) -> ProofPoints:
    """a = pi_a[:2]; b = pi_b with x/y swapped in both pairs; c = pi_c[:2]."""
    a = (int(proof.pi_a[0]), int(proof.pi_a[1]))
    b = (
        (int(proof.pi_b[0][1]), int(proof.pi_b[0][0])),
        (int(proof.pi_b[1][1]), int(proof.pi_b[1][0])),
    )
    c = (int(proof.pi_c[0]), int(proof.pi_c[1]))
    return ProofPoints(a=a, b=b, c=c)


@dataclass(frozen=True)
class ProofResult:
    proof: Groth16Proof
    public_signals: List[str]

    @property
    def proof_points(self) -> ProofPoints:
        return proof_to_proof_points(self.proof)


class ProverBackend(ABC):
    @abstractmethod
    def prove(self, artifacts: CircuitArtifacts, inputs: Mapping[str, Any]) -> ProofResult:
        ...

    @abstractmethod
    def verify(self, vkey_path: str, proof: Groth16Proof, public_signals: Sequence[str]) -> bool:
        ...


class SnarkjsProver(ProverBackend):
    """Subprocess backend for `snarkjs groth16 fullprove` / `groth16 verify`."""

    def __init__(self, snarkjs_bin: Optional[str] = None, timeout: Optional[int] = None) -> None:
        self.snarkjs_bin = snarkjs_bin or config.SNARKJS_BIN
        self.timeout = timeout or config.PROVER_TIMEOUT_SECONDS

    def _binary(self) -> str:
        path = shutil.which(self.snarkjs_bin)
        if path is None:
            raise ProverNotInstalledError(
                f"snarkjs binary '{self.snarkjs_bin}' not found",
                remediation="Install it with `npm install -g snarkjs` or set SNARKJS_BIN.",
            )
        return path

    def _run(self, args: List[str], cwd: str) -> subprocess.CompletedProcess:
        cmd = [self._binary()] + args
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            return subprocess.run(
                cmd,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ProverTimeoutError(
                f"snarkjs {args[0]} {args[1]} exceeded {self.timeout}s",
                remediation="Raise PROVER_TIMEOUT_SECONDS or run on a machine with more memory.",
            ) from e

    def prove(self, artifacts: CircuitArtifacts, inputs: Mapping[str, Any]) -> ProofResult:
        artifacts.ensure_present()
        with tempfile.TemporaryDirectory(prefix="groth16_") as d:
            td = Path(d)
            input_path = td / "input.json"
            proof_path = td / "proof.json"
            public_path = td / "public.json"
            input_path.write_text(json.dumps(inputs), encoding="utf-8")

            proc = self._run(
                [
                    "groth16", "fullprove",
                    str(input_path), artifacts.wasm_path, artifacts.zkey_path,
                    str(proof_path), str(public_path),
                ],
                cwd=d,
            )
            if proc.returncode != 0 or not proof_path.exists() or not public_path.exists():
                err = (proc.stderr or proc.stdout or "")[-_MAX_STDERR:]
                raise ProverProcessError(f"snarkjs fullprove failed (rc={proc.returncode}): {err}")

            proof = Groth16Proof.from_snarkjs(json.loads(proof_path.read_text(encoding="utf-8")))
            public_signals = [str(s) for s in json.loads(public_path.read_text(encoding="utf-8"))]

        logger.info(f"Generated {artifacts.name} proof with {len(public_signals)} public signals")
        return ProofResult(proof=proof, public_signals=public_signals)

    def verify(self, vkey_path: str, proof: Groth16Proof, public_signals: Sequence[str]) -> bool:
        if not os.path.isfile(vkey_path):
            raise CircuitArtifactsMissingError(
                f"Verification key not found: {vkey_path}",
                remediation="Export it with `snarkjs zkey export verificationkey`.",
            )
        with tempfile.TemporaryDirectory(prefix="groth16_verify_") as d:
            td = Path(d)
            proof_path = td / "proof.json"
            public_path = td / "public.json"
            proof_path.write_text(json.dumps(proof.to_snarkjs()), encoding="utf-8")
            public_path.write_text(json.dumps(list(public_signals)), encoding="utf-8")

            proc = self._run(["groth16", "verify", vkey_path, str(public_path), str(proof_path)], cwd=d)

        output = (proc.stdout or "") + (proc.stderr or "")
        if proc.returncode == 0 and "OK" in output:
            return True
        if "Invalid proof" in output:
            return False
        raise ProverProcessError(f"snarkjs verify failed (rc={proc.returncode}): {output[-_MAX_STDERR:]}")


class ProofPipeline:
    """Prove and check one circuit: artifacts, public signal count, backend."""

    def __init__(self, backend: ProverBackend, artifacts: CircuitArtifacts, expected_public_signals: int) -> None:
        self.backend = backend
        self.artifacts = artifacts
        self.expected_public_signals = expected_public_signals

    def generate(self, inputs: Union[Mapping[str, Any], Any]) -> ProofResult:
        payload = inputs.as_dict() if hasattr(inputs, "as_dict") else dict(inputs)
        result = self.backend.prove(self.artifacts, payload)
        if len(result.public_signals) != self.expected_public_signals:
            raise ProverProcessError(
                f"Circuit '{self.artifacts.name}' produced {len(result.public_signals)} public signals, "
                f"expected {self.expected_public_signals}",
                remediation="Check that the artifacts match the circuit variant.",
            )
        return result

    def verify(self, result: ProofResult) -> bool:
        return self.backend.verify(self.artifacts.vkey_path, result.proof, result.public_signals)

    def generate_many(self, inputs_list: Sequence[Any], max_workers: Optional[int] = None) -> List[ProofResult]:
        """Prove independent inputs in parallel; results keep input order."""
        workers = max_workers or config.PROVER_MAX_WORKERS
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(self.generate, inputs_list))

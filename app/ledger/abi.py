# app/ledger/abi.py
"""
Minimal ABIs for the two deployed contracts: only the functions and events
this service calls or decodes.
"""
from __future__ import annotations

from typing import Any, Dict, List


def _fn(name: str, inputs: List[tuple], outputs: List[Dict[str, Any]], mutability: str) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"internalType": t, "name": n, "type": t} for n, t in inputs],
        "outputs": outputs,
        "stateMutability": mutability,
    }


def _event(name: str, inputs: List[tuple]) -> Dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [
            {"indexed": indexed, "internalType": t, "name": n, "type": t}
            for n, t, indexed in inputs
        ],
    }


ATTESTATION_RECORD_COMPONENTS = [
    ("docHash", "bytes32"),
    ("ipfsCid", "string"),
    ("ocrVerified", "bool"),
    ("ocrScoreBps", "uint16"),
    ("sigVerified", "bool"),
    ("claimedSigner", "address"),
    ("status", "uint8"),
    ("attestedAt", "uint48"),
    ("attestedBy", "address"),
    ("version", "uint32"),
]

PROPOSAL_COMPONENTS = [
    ("id", "uint256"),
    ("proposerOrgId", "uint256"),
    ("ipfsCid", "string"),
    ("startTime", "uint48"),
    ("endTime", "uint48"),
    ("status", "uint8"),
    ("eligibleCount", "uint32"),
    ("forVotes", "uint32"),
    ("againstVotes", "uint32"),
    ("abstainVotes", "uint32"),
    ("passed", "bool"),
]


def _tuple_output(struct: str, components: List[tuple]) -> Dict[str, Any]:
    return {
        "components": [{"internalType": t, "name": n, "type": t} for n, t in components],
        "internalType": f"struct {struct}",
        "name": "",
        "type": "tuple",
    }


def _uint(name: str, bits: int = 256) -> Dict[str, Any]:
    return {"internalType": f"uint{bits}", "name": name, "type": f"uint{bits}"}


SIGNATURE_VERIFIER_ABI: List[Dict[str, Any]] = [
    _fn(
        "attestOcr",
        [("docHash", "bytes32"), ("ipfsCid", "string"), ("ocrScoreBps", "uint16"), ("verified", "bool")],
        [],
        "nonpayable",
    ),
    _fn(
        "getLatest",
        [("docHash", "bytes32")],
        [_tuple_output("OrganLinkSignatureVerifier.Record", ATTESTATION_RECORD_COMPONENTS)],
        "view",
    ),
    _event(
        "OcrAttested",
        [
            ("docHash", "bytes32", True),
            ("version", "uint32", False),
            ("ocrScoreBps", "uint16", False),
            ("verified", "bool", False),
        ],
    ),
]


POLICY_ABI: List[Dict[str, Any]] = [
    _fn(
        "createOrganization",
        [("name", "string"), ("manager", "address")],
        [_uint("orgId")],
        "nonpayable",
    ),
    _fn(
        "setOrganizationActive",
        [("orgId", "uint256"), ("active", "bool")],
        [],
        "nonpayable",
    ),
    _fn(
        "createProposalOnBehalf",
        [("proposerOrgId", "uint256"), ("ipfsCid", "string"), ("startTime", "uint48"), ("endTime", "uint48")],
        [_uint("proposalId")],
        "nonpayable",
    ),
    _fn(
        "castVoteOnBehalf",
        [("proposalId", "uint256"), ("voterOrgId", "uint256"), ("vote", "uint8")],
        [],
        "nonpayable",
    ),
    _fn("finalize", [("proposalId", "uint256")], [], "nonpayable"),
    _fn(
        "getProposal",
        [("proposalId", "uint256")],
        [_tuple_output("OrganLinkPolicyByOrganization.Proposal", PROPOSAL_COMPONENTS)],
        "view",
    ),
    _fn(
        "getTally",
        [("proposalId", "uint256")],
        [_uint("forVotes", 32), _uint("againstVotes", 32), _uint("abstainVotes", 32), _uint("eligibleCount", 32)],
        "view",
    ),
    _event(
        "OrganizationCreated",
        [("orgId", "uint256", True), ("name", "string", False), ("manager", "address", False)],
    ),
    _event(
        "ProposalCreated",
        [
            ("proposalId", "uint256", True),
            ("proposerOrgId", "uint256", True),
            ("ipfsCid", "string", False),
            ("startTime", "uint48", False),
            ("endTime", "uint48", False),
        ],
    ),
]

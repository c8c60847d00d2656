"""ABI fragments of the on-chain riddle contract.

Only the functions and the event this package touches are listed.
"""

from __future__ import annotations

from typing import Any


ROTATION_EVENT_SIGNATURE = "RiddleSet(string)"

RIDDLE_ABI: list[dict[str, Any]] = [
    {
        "inputs": [],
        "name": "isActive",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "riddle",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "winner",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "bot",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "_riddle", "type": "string"},
            {"name": "_answerHash", "type": "bytes32"},
        ],
        "name": "setRiddle",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "_answer", "type": "string"}],
        "name": "submitAnswer",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [{"indexed": False, "name": "riddle", "type": "string"}],
        "name": "RiddleSet",
        "type": "event",
    },
]

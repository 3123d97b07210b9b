"""
Node-kind grammar: canonical kinds, aliases, labels and per-kind data defaults.
"""

from __future__ import annotations

import copy
import re
from typing import Any, Dict, FrozenSet, Optional

from flowgen.ir.flow_schema import NodeKind

CANONICAL_KINDS: Dict[str, NodeKind] = {kind.value: kind for kind in NodeKind}

# Keys are compared after _alias_key() folding.
NODE_TYPE_ALIASES: Dict[str, NodeKind] = {
    # start
    "start": NodeKind.START,
    "begin": NodeKind.START,
    "entry": NodeKind.START,
    "trigger": NodeKind.START,
    "onstart": NodeKind.START,
    # llm
    "llm": NodeKind.LLM,
    "ai": NodeKind.LLM,
    "gpt": NodeKind.LLM,
    "prompt": NodeKind.LLM,
    "generate": NodeKind.LLM,
    "completion": NodeKind.LLM,
    "aiprompt": NodeKind.LLM,
    # text
    "text": NodeKind.TEXT,
    "say": NodeKind.TEXT,
    "sendtext": NodeKind.TEXT,
    "sendmessage": NodeKind.TEXT,
    "statictext": NodeKind.TEXT,
    # airesponse
    "airesponse": NodeKind.AIRESPONSE,
    "message": NodeKind.AIRESPONSE,
    "response": NodeKind.AIRESPONSE,
    "reply": NodeKind.AIRESPONSE,
    "respond": NodeKind.AIRESPONSE,
    "output": NodeKind.AIRESPONSE,
    # listen
    "listen": NodeKind.LISTEN,
    "wait": NodeKind.LISTEN,
    "input": NodeKind.LISTEN,
    "userinput": NodeKind.LISTEN,
    "waitforinput": NodeKind.LISTEN,
    # set
    "set": NodeKind.SET,
    "setvalue": NodeKind.SET,
    "setvariable": NodeKind.SET,
    "assign": NodeKind.SET,
    "variable": NodeKind.SET,
    # condition
    "condition": NodeKind.CONDITION,
    "if": NodeKind.CONDITION,
    "ifelse": NodeKind.CONDITION,
    "branch": NodeKind.CONDITION,
    "switch": NodeKind.CONDITION,
    # routing
    "routing": NodeKind.ROUTING,
    "classify": NodeKind.ROUTING,
    "classifier": NodeKind.ROUTING,
    "router": NodeKind.ROUTING,
    "route": NodeKind.ROUTING,
    "intent": NodeKind.ROUTING,
    "intentrouter": NodeKind.ROUTING,
    # api
    "api": NodeKind.API,
    "http": NodeKind.API,
    "httprequest": NodeKind.API,
    "request": NodeKind.API,
    "webhook": NodeKind.API,
    "apicall": NodeKind.API,
    # code
    "code": NodeKind.CODE,
    "script": NodeKind.CODE,
    "function": NodeKind.CODE,
    "javascript": NodeKind.CODE,
    "python": NodeKind.CODE,
    # userdatacapture
    "userdatacapture": NodeKind.USERDATACAPTURE,
    "collect": NodeKind.USERDATACAPTURE,
    "capture": NodeKind.USERDATACAPTURE,
    "form": NodeKind.USERDATACAPTURE,
    "datacapture": NodeKind.USERDATACAPTURE,
    "collectdata": NodeKind.USERDATACAPTURE,
    # end
    "end": NodeKind.END,
    "stop": NodeKind.END,
    "finish": NodeKind.END,
    "exit": NodeKind.END,
    "terminate": NodeKind.END,
}

SINGLE_OUTPUT_KINDS: FrozenSet[NodeKind] = frozenset(
    {
        NodeKind.START,
        NodeKind.LLM,
        NodeKind.TEXT,
        NodeKind.AIRESPONSE,
        NodeKind.LISTEN,
        NodeKind.SET,
        NodeKind.CODE,
        NodeKind.USERDATACAPTURE,
    }
)
MULTI_OUTPUT_KINDS: FrozenSet[NodeKind] = frozenset(
    {NodeKind.CONDITION, NodeKind.ROUTING, NodeKind.API}
)
MESSAGE_PRODUCER_KINDS: FrozenSet[NodeKind] = frozenset({NodeKind.TEXT, NodeKind.LLM})
TERMINAL_KINDS: FrozenSet[NodeKind] = frozenset({NodeKind.START, NodeKind.END})

DEFAULT_LABELS: Dict[NodeKind, str] = {
    NodeKind.START: "Start",
    NodeKind.LLM: "LLM",
    NodeKind.TEXT: "Text",
    NodeKind.AIRESPONSE: "AI Response",
    NodeKind.LISTEN: "Listen",
    NodeKind.SET: "Set Value",
    NodeKind.CONDITION: "Condition",
    NodeKind.ROUTING: "Routing",
    NodeKind.API: "API Request",
    NodeKind.CODE: "Code",
    NodeKind.USERDATACAPTURE: "User Data Capture",
    NodeKind.END: "End",
}

DEFAULT_NODE_DATA: Dict[NodeKind, Dict[str, Any]] = {
    NodeKind.START: {},
    NodeKind.LLM: {"prompt": "", "systemPrompt": "", "outputVariable": ""},
    NodeKind.TEXT: {"text": ""},
    NodeKind.AIRESPONSE: {"message": ""},
    NodeKind.LISTEN: {"variable": ""},
    NodeKind.SET: {"variable": "", "value": ""},
    NodeKind.CONDITION: {"routeMap": {}},
    NodeKind.ROUTING: {"intentIds": [], "intentMap": {}},
    NodeKind.API: {
        "method": "",
        "url": "",
        "headers": {},
        "body": "",
        "successNodeId": None,
        "errorNodeId": None,
    },
    NodeKind.CODE: {"code": ""},
    NodeKind.USERDATACAPTURE: {"fields": []},
    NodeKind.END: {},
}


def _alias_key(raw: str) -> str:
    return re.sub(r"[\s_\-]+", "", raw.strip().lower())


def resolve_kind(raw_type: Any) -> Optional[NodeKind]:
    """Map a loose type string onto a canonical kind, or None when unknown."""

    if isinstance(raw_type, NodeKind):
        return raw_type
    if not isinstance(raw_type, str):
        return None
    canonical = CANONICAL_KINDS.get(raw_type)
    if canonical is not None:
        return canonical
    return NODE_TYPE_ALIASES.get(_alias_key(raw_type))


def default_data(kind: NodeKind) -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_NODE_DATA[kind])


def fill_data_defaults(kind: NodeKind, data: Dict[str, Any]) -> Dict[str, Any]:
    """Return `data` with the kind defaults added for missing keys only."""

    merged = dict(data)
    for key, value in default_data(kind).items():
        if key not in merged:
            merged[key] = value
    return merged

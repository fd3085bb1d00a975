"""
Token pricing for testing scopes.
Free-form testing-type names are normalized and mapped onto four cost tiers.
"""
import re
from typing import Dict, Iterable, List, Mapping, Optional

from shared.models import ScopeItem


BASIC_TEST = 'basic_test'
INTEGRATION_TEST = 'integration_test'
LOAD_TEST = 'load_test'
AI_ANALYSIS = 'ai_analysis'

COST_KEY_ALIASES = {
    BASIC_TEST: frozenset({
        'basic_test',
        'functional_testing',
        'regression_testing',
        'usability_testing',
        'compatibility_testing',
        'ui_testing',
        'ui_ux_testing',
        'ux_testing',
    }),
    INTEGRATION_TEST: frozenset({
        'integration_test',
        'integration_testing',
        'api_testing',
        'system_integration_testing',
    }),
    LOAD_TEST: frozenset({
        'load_test',
        'load_testing',
        'performance_testing',
        'stress_testing',
        'security_testing',
    }),
    AI_ANALYSIS: frozenset({
        'ai_analysis',
        'ai_analysis_testing',
        'ai_testing',
        'ai_assisted_testing',
    }),
}

TOKEN_COST_BY_KEY: Dict[str, int] = {
    BASIC_TEST: 1,
    INTEGRATION_TEST: 3,
    LOAD_TEST: 5,
    AI_ANALYSIS: 8,
}

TOKEN_COST_REFERENCE = [
    {'label': 'Basic test', 'cost': TOKEN_COST_BY_KEY[BASIC_TEST]},
    {'label': 'Integration test', 'cost': TOKEN_COST_BY_KEY[INTEGRATION_TEST]},
    {'label': 'Load test', 'cost': TOKEN_COST_BY_KEY[LOAD_TEST]},
    {'label': 'AI analysis', 'cost': TOKEN_COST_BY_KEY[AI_ANALYSIS]},
]


def normalize_testing_type(value: Optional[str]) -> str:
    """
    Normalize a testing-type name into a lookup key.

    'UI/UX Testing' -> 'ui_ux_testing', '  API  Testing ' -> 'api_testing'
    """
    if not value:
        return ''
    normalized = re.sub(r'[^a-z0-9]+', '_', str(value).strip().lower())
    return normalized.strip('_')


def resolve_cost_key(normalized: str) -> str:
    """Map a normalized key to its canonical cost key, or return it unchanged."""
    if not normalized:
        return BASIC_TEST
    for cost_key, aliases in COST_KEY_ALIASES.items():
        if normalized in aliases:
            return cost_key
    return normalized


def cost_of(cost_key: str) -> int:
    # Unrecognized types are priced at the cheapest tier, never rejected
    return TOKEN_COST_BY_KEY.get(cost_key, TOKEN_COST_BY_KEY[BASIC_TEST])


def token_cost_for_type(value: Optional[str]) -> int:
    return cost_of(resolve_cost_key(normalize_testing_type(value)))


def required_tokens(types: Optional[Iterable[str]]) -> int:
    """Total token cost of the selected testing types (0 for none)."""
    if not types:
        return 0
    return sum(token_cost_for_type(t) for t in types)


def build_testing_scope(types: Iterable[str],
                        allocations: Optional[Mapping[str, int]] = None) -> List[ScopeItem]:
    """
    Build the scope recorded on a request at submission time.

    Each selected type gets its explicit allocation when the customer set one,
    otherwise its tier cost; allocations below one token are raised to one.
    """
    allocations = allocations or {}
    scope = []
    for testing_type in types:
        allocation = allocations.get(testing_type)
        tokens = int(allocation) if allocation is not None else token_cost_for_type(testing_type)
        scope.append(ScopeItem(type=testing_type, tokens=max(1, tokens)))
    return scope

"""Breaking-change classification for a pair of symbol versions."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from .models import (
    BreakingChange,
    BreakingChangeType,
    CodeChange,
    EstimatedImpact,
    Location,
    Parameter,
    Severity,
    Symbol,
)

# Heuristic lines of code touched per affected call site.
LOC_PER_CALL_SITE = 2

Verdict = Tuple[Severity, str]


class ImpactAnalyzer:
    """Turns (old symbol, new symbol, call sites) into a breaking-change verdict.

    Checks run in a fixed order and the first that fires wins: removal,
    signature, parameters, return type.  A symbol seen for the first time
    is never breaking.
    """

    def detect_breaking_changes(
        self,
        old_symbol: Optional[Symbol],
        new_symbol: Optional[Symbol],
        affected_locations: Sequence[Location],
    ) -> Optional[BreakingChange]:
        if old_symbol is None:
            return None

        locations = tuple(affected_locations)

        if new_symbol is None or not new_symbol.name:
            return self._verdict(
                old_symbol, "removal",
                ("critical", f'Symbol "{old_symbol.name}" has been removed'),
                locations,
            )

        checks: Tuple[Tuple[BreakingChangeType, Optional[Verdict]], ...] = (
            ("signature", _signature_change(old_symbol, new_symbol)),
            ("parameter", _parameter_change(old_symbol, new_symbol)),
            ("type", _return_type_change(old_symbol, new_symbol)),
        )
        for change_type, verdict in checks:
            if verdict is not None:
                return self._verdict(new_symbol, change_type, verdict, locations)
        return None

    def analyze_change(
        self, change: CodeChange, affected_locations: Sequence[Location],
    ) -> Optional[BreakingChange]:
        return self.detect_breaking_changes(change.old_symbol, change.symbol, affected_locations)

    @staticmethod
    def _verdict(
        symbol: Symbol,
        change_type: BreakingChangeType,
        verdict: Verdict,
        locations: Tuple[Location, ...],
    ) -> BreakingChange:
        severity, description = verdict
        return BreakingChange(
            symbol=symbol,
            change_type=change_type,
            severity=severity,
            description=description,
            affected_locations=locations,
            estimated_impact=calculate_impact(locations),
        )


def calculate_impact(locations: Sequence[Location]) -> EstimatedImpact:
    return EstimatedImpact(
        files_affected=len({loc.file for loc in locations}),
        call_sites_affected=len(locations),
        estimated_loc=len(locations) * LOC_PER_CALL_SITE,
    )


def _signature_change(old: Symbol, new: Symbol) -> Optional[Verdict]:
    if old.signature == new.signature:
        return None
    description = (
        f'Signature changed from "{old.signature or "unknown"}" '
        f'to "{new.signature or "unknown"}"'
    )
    # An unknown signature on either side can't be reasoned about.
    if not old.signature or not new.signature:
        return ("critical", description)
    return ("warning", description)


def _parameter_change(old: Symbol, new: Symbol) -> Optional[Verdict]:
    old_params: Sequence[Parameter] = old.parameters or ()
    new_params: Sequence[Parameter] = new.parameters or ()
    if tuple(old_params) == tuple(new_params):
        return None

    old_by_name = {p.name: p for p in old_params}
    new_names = {p.name for p in new_params}

    removed = [p.name for p in old_params if p.name not in new_names]
    if removed:
        return ("critical", f"Parameters removed: {', '.join(removed)}")

    added_required = [p.name for p in new_params if not p.optional and p.name not in old_by_name]
    if added_required:
        return ("critical", f"Required parameters added: {', '.join(added_required)}")

    added_optional = [p.name for p in new_params if p.optional and p.name not in old_by_name]
    if added_optional:
        return ("safe", f"Optional parameters added: {', '.join(added_optional)}")

    retyped = [
        p.name for p in new_params
        if p.name in old_by_name and old_by_name[p.name].type != p.type
    ]
    if retyped:
        return ("warning", f"Parameter types changed: {', '.join(retyped)}")

    return ("warning", "Parameters modified")


def _return_type_change(old: Symbol, new: Symbol) -> Optional[Verdict]:
    if old.return_type == new.return_type:
        return None
    # Widening and narrowing are not distinguished yet.
    return (
        "warning",
        f'Return type changed from "{old.return_type or "unknown"}" '
        f'to "{new.return_type or "unknown"}"',
    )

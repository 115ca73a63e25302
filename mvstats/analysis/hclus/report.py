"""Python commands that reproduce an analysis outside the web app."""
from __future__ import annotations

from dataclasses import fields
from typing import List, Optional, Sequence

from mvstats.analysis.hclus.models import HclusRequest
from mvstats.analysis.hclus.plots import parse_plots
from mvstats.data.datasets import fix_names

_DEFAULTS = HclusRequest(dataset="", vars=())


def _literal(value) -> str:
    if hasattr(value, "value"):
        return repr(value.value)
    if isinstance(value, tuple):
        return repr(list(value))
    return repr(value)


def request_arguments(request: HclusRequest) -> List[str]:
    """``name=value`` pairs for the fields that differ from the defaults."""
    args = [f"dataset={request.dataset!r}", f"vars={list(request.vars)!r}"]
    for spec in fields(HclusRequest):
        if spec.name in ("dataset", "vars"):
            continue
        value = getattr(request, spec.name)
        if value != getattr(_DEFAULTS, spec.name):
            args.append(f"{spec.name}={_literal(value)}")
    return args


def report_command(
    request: HclusRequest,
    plots: Optional[Sequence[str]] = None,
    cutoff: float = 0.05,
    nr_clusters: int = 3,
    store_name: Optional[str] = None,
    nr_clus: int = 2,
) -> str:
    """Source text running ``request`` and the selected outputs."""
    lines = [
        "from mvstats.analysis.hclus import HclusRequest, cluster, plot, store_membership, summarize",
        "",
        f"result = cluster(HclusRequest({', '.join(request_arguments(request))}), store)",
        "print(summarize(result))",
    ]
    kinds = parse_plots(plots)
    if kinds:
        plot_args = [f"plots={kinds!r}"]
        if cutoff != 0.05:
            plot_args.append(f"cutoff={cutoff!r}")
        if "pairwise" in kinds and nr_clusters != 3:
            plot_args.append(f"nr_clusters={nr_clusters!r}")
        lines.append(f"fig = plot(result, {', '.join(plot_args)})")
    if store_name:
        name = fix_names(store_name)
        lines.append(
            f"store.replace({request.dataset!r}, store_membership(store.get({request.dataset!r}), "
            f"result, nr_clus={int(nr_clus)}, name={name!r}))"
        )
    return "\n".join(lines) + "\n"

"""
Stream coalescing: merge adjacent text outputs written to the same stream.
"""

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from notebook_live.notebook import Output


def _same_stream(kept: "Output", output: "Output") -> bool:
    return (
        kept.output_type == "stream"
        and output.output_type == "stream"
        and kept.stream == output.stream
        and kept.name == output.name
    )


def coalesce_streams(outputs: Sequence["Output"]) -> list["Output"]:
    """
    Merge each stream output into the preceding kept one when both write
    to the same stream name and channel.

    The input outputs are left untouched; merged outputs are copies.

    Args:
        outputs: Outputs in document order

    Returns:
        New list of outputs
    """
    coalesced: list["Output"] = []
    for output in outputs:
        if coalesced and _same_stream(coalesced[-1], output):
            last = coalesced[-1]
            last.text = (last.text or "") + (output.text or "")
        else:
            coalesced.append(output.model_copy())
    return coalesced

"""
Decode configuration.

DecodeOptions is constructed with explicit keyword arguments, from parsed
command-line arguments, or falls back to the PE_INSPECT_RVA_MODE environment
variable for the RVA resolution mode.
"""

import argparse
import os
from enum import Enum

RVA_MODE_ENV = "PE_INSPECT_RVA_MODE"


class RvaMode(Enum):
    """How export-directory RVAs are turned into file offsets."""

    IDENTITY = "identity"  # RVA used directly as a file offset
    SECTION = "section"  # RVA mapped through the section table

    @classmethod
    def parse(cls, value: str) -> "RvaMode":
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ValueError(
                f"Unknown RVA mode {value!r} (expected one of: {choices})"
            ) from None


class DecodeOptions:
    """Settings for one decode.

    rva_mode defaults to $PE_INSPECT_RVA_MODE, then to RvaMode.IDENTITY.
    max_sections caps NumberOfSections; None (the default) means no cap.
    signature_pointer_width is 1 (low byte of e_lfanew) or 4 (full field).
    """

    def __init__(
        self,
        *,
        rva_mode: RvaMode | None = None,
        max_sections: int | None = None,
        signature_pointer_width: int = 1,
    ):
        if rva_mode is None:
            env_value = os.environ.get(RVA_MODE_ENV)
            rva_mode = RvaMode.parse(env_value) if env_value else RvaMode.IDENTITY
        if signature_pointer_width not in (1, 4):
            raise ValueError(
                f"signature_pointer_width must be 1 or 4, got {signature_pointer_width}"
            )
        self.rva_mode = rva_mode
        self.max_sections = max_sections
        self.signature_pointer_width = signature_pointer_width

    @staticmethod
    def configure_argparse(p: argparse.ArgumentParser):
        p.add_argument(
            "--rva-mode",
            choices=[m.value for m in RvaMode],
            default=None,
            help=f"How export RVAs map to file offsets (default: ${RVA_MODE_ENV} "
            "or 'identity')",
        )
        p.add_argument(
            "--max-sections",
            type=int,
            default=0,
            help="Reject headers declaring more sections than this (0: no limit)",
        )
        p.add_argument(
            "--wide-signature-pointer",
            action="store_true",
            help="Read the full 4-byte e_lfanew instead of its low byte",
        )

    @staticmethod
    def from_args(args: argparse.Namespace) -> "DecodeOptions":
        rva_mode = RvaMode.parse(args.rva_mode) if args.rva_mode else None
        max_sections: int | None = args.max_sections or None
        return DecodeOptions(
            rva_mode=rva_mode,
            max_sections=max_sections,
            signature_pointer_width=4 if args.wide_signature_pointer else 1,
        )

    def __repr__(self) -> str:
        return (
            f"DecodeOptions(rva_mode={self.rva_mode.name}, "
            f"max_sections={self.max_sections}, "
            f"signature_pointer_width={self.signature_pointer_width})"
        )

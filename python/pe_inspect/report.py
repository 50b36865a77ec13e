"""
Summaries of a decoded PeImage: plain dicts, text, and MessagePack.
"""

import msgpack

from .image import PeImage
from .optional_header import OptionalHeader
from .sections import Section
from .types import flag_names


def _optional_header_to_dict(opt: OptionalHeader) -> dict:
    return {
        "variant": opt.Variant.name,
        "magic": opt.Magic,
        "linker_version": str(opt.LinkerVersion),
        "size_of_code": opt.SizeOfCode,
        "size_of_initialized_data": opt.SizeOfInitializedData,
        "size_of_uninitialized_data": opt.SizeOfUninitializedData,
        "address_of_entry_point": opt.AddressOfEntryPoint,
        "base_of_code": opt.BaseOfCode,
        "base_of_data": opt.BaseOfData,
        "image_base": opt.ImageBase,
        "section_alignment": opt.SectionAlignment,
        "file_alignment": opt.FileAlignment,
        "operating_system_version": str(opt.OperatingSystemVersion),
        "image_version": str(opt.ImageVersion),
        "subsystem_version": str(opt.SubsystemVersion),
        "size_of_image": opt.SizeOfImage,
        "size_of_headers": opt.SizeOfHeaders,
        "checksum": opt.CheckSum,
        "subsystem": opt.Subsystem.name,
        "dll_characteristics": flag_names(opt.DllCharacteristics),
        "stack_reserve": opt.StackMemory.reserve,
        "stack_commit": opt.StackMemory.commit,
        "heap_reserve": opt.HeapMemory.reserve,
        "heap_commit": opt.HeapMemory.commit,
        "number_of_rva_and_sizes": opt.NumberOfRvaAndSizes,
        "data_directories": {
            entry.name: [d.VirtualAddress, d.Size]
            for entry, d in opt.DataDirectories
            if d.is_present
        },
    }


def _section_to_dict(section: Section) -> dict:
    return {
        "virtual_size": section.VirtualSize,
        "virtual_address": section.VirtualAddress,
        "size_of_raw_data": section.SizeOfRawData,
        "pointer_to_raw_data": section.PointerToRawData,
        "characteristics": flag_names(section.Characteristics),
    }


def image_to_dict(image: PeImage) -> dict:
    """Plain-data summary of a decoded image (msgpack/JSON friendly)."""
    coff = image.coff_header
    summary = {
        "path": str(image.path) if image.path is not None else None,
        "endianness": image.endianness.name,
        "pe_offset": image.pe_offset,
        "coff_header": {
            "machine": coff.Machine.name,
            "machine_code": coff.MachineCode,
            "number_of_sections": coff.NumberOfSections,
            "time_date_stamp": coff.TimeDateStamp.isoformat(),
            "pointer_to_symbol_table": coff.PointerToSymbolTable,
            "number_of_symbols": coff.NumberOfSymbols,
            "size_of_optional_header": coff.SizeOfOptionalHeader,
            "characteristics": flag_names(coff.Characteristics),
        },
        "optional_header": _optional_header_to_dict(image.optional_header),
        "sections": {
            name: _section_to_dict(section) for name, section in image.sections.items()
        },
        "exports": None,
    }

    exports = image.export_directory
    if exports is not None:
        summary["exports"] = {
            "name": exports.Name,
            "time_date_stamp": exports.TimeDateStamp.isoformat(),
            "version": str(exports.Version),
            "ordinal_base": exports.OrdinalBase,
            "address_table_entries": exports.AddressTableEntries,
            "symbols": [[e.name, e.ordinal] for e in exports.Exports],
        }
    return summary


def format_image(image: PeImage) -> str:
    """Human-readable multi-line description of a decoded image."""
    coff = image.coff_header
    opt = image.optional_header
    lines = [
        f"File: {image.path}",
        f"PE signature at {image.pe_offset:#x} ({image.endianness.name.lower()}-endian)",
        "",
        "COFF header:",
        f"  Machine:             {coff.Machine.name} (0x{coff.MachineCode:04x})",
        f"  Sections:            {coff.NumberOfSections}",
        f"  Timestamp:           {coff.TimeDateStamp.isoformat()}",
        f"  Optional hdr size:   {coff.SizeOfOptionalHeader}",
        f"  Characteristics:     {', '.join(flag_names(coff.Characteristics)) or '-'}",
        "",
        f"Optional header ({opt.Variant.name}):",
        f"  Linker version:      {opt.LinkerVersion}",
        f"  Entry point:         {opt.AddressOfEntryPoint:#x}",
        f"  Image base:          {opt.ImageBase:#x}",
        f"  Alignment:           section {opt.SectionAlignment:#x}, file {opt.FileAlignment:#x}",
        f"  Subsystem:           {opt.Subsystem.name} {opt.SubsystemVersion}",
        f"  DLL characteristics: {', '.join(flag_names(opt.DllCharacteristics)) or '-'}",
        f"  Stack:               reserve {opt.StackMemory.reserve:#x}, commit {opt.StackMemory.commit:#x}",
        f"  Heap:                reserve {opt.HeapMemory.reserve:#x}, commit {opt.HeapMemory.commit:#x}",
    ]

    present = [(entry, d) for entry, d in opt.DataDirectories if d.is_present]
    if present:
        lines.append("  Data directories:")
        for entry, d in present:
            lines.append(
                f"    {entry.name:<20} rva {d.VirtualAddress:#010x} size {d.Size:#x}"
            )

    lines.append("")
    lines.append(f"Sections ({len(image.sections)}):")
    for name, s in image.sections.items():
        lines.append(
            f"  {name:<8} va {s.VirtualAddress:#010x} vsize {s.VirtualSize:#x} "
            f"raw {s.PointerToRawData:#x}+{s.SizeOfRawData:#x} "
            f"[{', '.join(flag_names(s.Characteristics))}]"
        )

    exports = image.export_directory
    lines.append("")
    if exports is None:
        lines.append("Exports: none")
    else:
        lines.append(f"Exports of {exports.Name} ({len(exports.Exports)}):")
        for entry in exports.Exports:
            lines.append(f"  {entry.ordinal:>5}  {entry.name}")

    return "\n".join(lines)


def pack_image(image: PeImage) -> bytes:
    """Serialize an image summary to MessagePack."""
    return msgpack.packb(image_to_dict(image), use_bin_type=True)


def unpack_summary(data: bytes) -> dict:
    """Deserialize a summary produced by pack_image.

    Raises:
        ValueError: If data is not a valid MessagePack map
    """
    try:
        summary = msgpack.unpackb(data, raw=False, strict_map_key=True)
    except (msgpack.exceptions.UnpackException, ValueError) as e:
        raise ValueError(f"Invalid image summary: {e}") from e
    if not isinstance(summary, dict):
        raise ValueError(
            f"Invalid image summary: expected map, got {type(summary).__name__}"
        )
    return summary

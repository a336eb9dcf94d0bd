SIZE_UNITS = ("Bytes", "KB", "MB", "GB")

def format_file_size(num_bytes: int) -> str:
    """Render a byte count with base-1024 units, e.g. 1536 -> "1.5 KB"."""
    if num_bytes <= 0:
        return "0 Bytes"
    i = 0
    while i < len(SIZE_UNITS) - 1 and num_bytes >= 1024 ** (i + 1):
        i += 1
    if i == 0:
        return f"{num_bytes} Bytes"
    value = num_bytes / 1024 ** i
    # 1048575 bytes would otherwise print as "1024.0 KB"
    if round(value, 1) >= 1024 and i < len(SIZE_UNITS) - 1:
        i += 1
        value = num_bytes / 1024 ** i
    return f"{value:.1f} {SIZE_UNITS[i]}"

"""String manipulation utilities."""


def truncate_for_logging(
    text: str, max_length: int = 1000, edge_length: int = 500
) -> str:
    """
    Truncate text for logging, showing beginning and end.

    Long text is truncated to show the first and last portions,
    with an ellipsis in the middle.

    Args:
        text: Text to truncate
        max_length: Maximum length before truncation is applied
        edge_length: Number of characters to show from start and end

    Returns:
        Truncated text with ellipsis if needed, or original text if short enough

    Examples:
        >>> truncate_for_logging("Hello", max_length=100)
        'Hello'
        >>> "..." in truncate_for_logging("x" * 2000, max_length=1000, edge_length=10)
        True
    """
    if len(text) <= max_length:
        return text
    return f"{text[:edge_length]}...\n...{text[-edge_length:]}"


def count_words(text: str) -> int:
    """
    Count space-separated words, ignoring blank runs.

    Examples:
        >>> count_words("  hello   world ")
        2
        >>> count_words("")
        0
    """
    return len([word for word in text.strip().split(" ") if word.strip()])

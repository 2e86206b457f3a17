"""Partition texts into embedding request batches."""

from src.errors import InvalidInputError

# Texts whose trimmed length is not above this are not worth embedding
MIN_TEXT_LENGTH = 10


def is_embeddable(text: str) -> bool:
    return bool(text) and len(text.strip()) > MIN_TEXT_LENGTH


def batch_texts(texts: list[str], batch_size: int = 100) -> list[list[str]]:
    """Split texts into consecutive groups of at most batch_size.

    Near-empty texts are dropped from each group and groups left empty are
    omitted, so the batches may hold fewer texts than the input.
    """
    if not texts:
        raise InvalidInputError("Invalid texts array provided")
    if batch_size <= 0:
        raise InvalidInputError("Batch size must be greater than 0", {"batch_size": batch_size})

    batches = []
    for i in range(0, len(texts), batch_size):
        valid_batch = [text for text in texts[i:i + batch_size] if is_embeddable(text)]
        if valid_batch:
            batches.append(valid_batch)
    return batches

"""Calendar view assembly and reminder queue helpers."""

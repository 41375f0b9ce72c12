"""Prompt templates for AI field-to-memory matching."""
from typing import Sequence

from .models import CompressedField, CompressedMemory, WebsiteContext

SYSTEM_PROMPT = """You are an expert form-filling assistant that matches form fields to stored user memories.
Your task is to analyze form fields and determine which stored memory entry (or entries) best matches each field.

## MATCHING CRITERIA

1. Semantic similarity: the field's purpose should align with the memory's content
2. Context alignment: field labels, placeholders and helper text should relate to the memory's question/category
3. Type compatibility: email fields need email memories, phone fields need phone memories, etc.
4. Confidence scoring: only suggest matches you are confident about (0.5+ confidence)
5. Website context matters: the website's type and purpose heavily influence the meaning of a field

## SELECT FIELDS (Dropdowns)

For select/dropdown fields you MUST:
- Return a value that EXACTLY matches one of the provided option values
- Match the user's memory to the closest option semantically
- If no option matches well, set the value to null

## RULES

1. ALWAYS USE MEMORIES: if a stored memory matches the field, use it
2. DERIVE FROM MEMORIES: you may extract parts of a memory (first name from full name, city from full address)
3. COMBINE MEMORIES: for compound fields (full name, complete address) combine related memories
4. NEVER match password fields
5. Set 'value' to null ONLY if no memory matches AND the data cannot be derived from existing memories
6. Do NOT invent data. Never fabricate personal information, dates, numbers or unique identifiers

## OUTPUT FORMAT

- Return one match per field, keyed by the field's highlight index
- Include a confidence score (0-1) for match quality
- Explain your reasoning concisely
- For select fields, ALWAYS return exact option values"""


def _format_field(field: CompressedField) -> str:
    parts = [
        f"**[{field.highlight_index}]**",
        f"- type: {field.type}",
        f"- purpose: {field.purpose}",
        f"- labels: {', '.join(field.labels) if field.labels else 'none'}",
        f"- context: {field.context or 'none'}",
    ]
    if field.options:
        options = ", ".join(
            f'"{opt.value}"' + (f" ({opt.label})" if opt.label else "")
            for opt in field.options
        )
        parts.append(f"- options: [{options}]")
    return "\n".join(parts)


def _format_memory(position: int, memory: CompressedMemory) -> str:
    return "\n".join([
        f"**Memory {position}**",
        f"- question: {memory.question or 'none'}",
        f"- answer: {memory.answer}",
        f"- category: {memory.category}",
    ])


def build_match_prompt(
    fields: Sequence[CompressedField],
    memories: Sequence[CompressedMemory],
    context: WebsiteContext,
) -> str:
    """Build user prompt with website context, fields and memories.

    Fields without a highlight index cannot be correlated back and are left out.
    """
    fields_text = "\n\n".join(
        _format_field(f) for f in fields if f.highlight_index is not None
    )
    memories_text = "\n\n".join(
        _format_memory(i, m) for i, m in enumerate(memories, start=1)
    )

    return f"""Based on the following website context, match the form fields to the best stored memories.

## WEBSITE CONTEXT
**Website Type**: {context.website_type}
**Inferred Form Purpose**: {context.form_purpose}
**Page Title**: {context.metadata.title}
**URL**: {context.metadata.url}

## FORM FIELDS
{fields_text}

## AVAILABLE MEMORIES
{memories_text}

For each field, determine:
1. Which memory (if any) is the best match
2. Your confidence in that match (0-1)
3. Why you chose that memory (or why no memory fits)
4. The answer in the 'value' field

**CRITICAL for select fields**: return EXACT option values from the provided lists, or null if no suitable option is found."""

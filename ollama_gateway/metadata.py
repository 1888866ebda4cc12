"""
Synthesized model metadata.

The upstream API only lists identifiers, so everything an Ollama client
expects to see about a model (size class, family, digest, ...) is derived
from the identifier text. None of it is authoritative.
"""
import hashlib
from dataclasses import dataclass, field
from typing import Optional

from .models import utc_timestamp

# (substring, label) pairs, first match wins
PARAMETER_SIZE_RULES: list[tuple[str, str]] = [
    ("70b", "70B"),
    ("13b", "13B"),
    ("3b", "3B"),
    ("1b", "1B"),
]
DEFAULT_PARAMETER_SIZE = "7B"

FAMILY_RULES: list[tuple[str, str]] = [
    ("llama", "llama"),
    ("mistral", "mistral"),
    ("gemma", "gemma"),
    ("claude", "claude"),
    ("gpt", "gpt"),
]
DEFAULT_FAMILY = "transformer"

# Placeholders, not measured
CONTEXT_LENGTH = 200000
QUANTIZATION_LEVEL = "Q4_K_M"
MODEL_FORMAT = "gguf"
MODEL_SIZE_BYTES = 270898672

MODEL_TEMPLATE = "{{ if .System }}{{ .System }}\n{{ end }}{{ if .Prompt }}{{ .Prompt }}{{ end }}"


@dataclass(frozen=True)
class ModelDescriptor:
    """Presentation metadata for one upstream model."""
    identifier: str
    name: str  # final "/" segment of the identifier
    digest: str
    parameter_size: str
    family: str
    quantization_level: str = QUANTIZATION_LEVEL
    context_length: int = CONTEXT_LENGTH
    format: str = MODEL_FORMAT
    families: tuple[str, ...] = field(default=())

    @property
    def parameter_count(self) -> int:
        return int(self.parameter_size.rstrip("B")) * 1_000_000_000

    def details(self) -> dict:
        return {
            "parent_model": "",
            "format": self.format,
            "family": self.family,
            "families": list(self.families or (self.family,)),
            "parameter_size": self.parameter_size,
            "quantization_level": self.quantization_level,
        }


def display_name(identifier: str) -> str:
    return identifier.rsplit("/", 1)[-1]


def match_rules(text: str, rules: list[tuple[str, str]], default: str) -> str:
    """Return the label of the first rule whose pattern occurs in text."""
    text = text.lower()
    for pattern, label in rules:
        if pattern in text:
            return label
    return default


def digest(identifier: str) -> str:
    return hashlib.sha256(identifier.encode("utf-8")).hexdigest()


def describe(identifier: str) -> ModelDescriptor:
    """Build the descriptor for an upstream identifier."""
    name = display_name(identifier)
    text = f"{identifier} {name}"
    family = match_rules(text, FAMILY_RULES, DEFAULT_FAMILY)
    return ModelDescriptor(
        identifier=identifier,
        name=name,
        digest=digest(identifier),
        parameter_size=match_rules(text, PARAMETER_SIZE_RULES, DEFAULT_PARAMETER_SIZE),
        family=family,
        families=(family,),
    )


def tag_entry(descriptor: ModelDescriptor, modified_at: Optional[str] = None) -> dict:
    """Render a descriptor as one /api/tags list entry."""
    return {
        "name": descriptor.name,
        "model": descriptor.name,
        "modified_at": modified_at or utc_timestamp(),
        "size": MODEL_SIZE_BYTES,
        "digest": descriptor.digest,
        "details": descriptor.details(),
    }


def show_payload(alias: str, descriptor: ModelDescriptor) -> dict:
    """Render a descriptor as an /api/show response."""
    return {
        "modelfile": f"# Modelfile generated for {alias}\nFROM {descriptor.identifier}",
        "parameters": "",
        "template": MODEL_TEMPLATE,
        "system": "",
        "details": descriptor.details(),
        "model_info": {
            "general.architecture": descriptor.family,
            "general.file_type": 1,
            "general.parameter_count": descriptor.parameter_count,
            "general.quantization_version": 2,
            "llama.context_length": descriptor.context_length,
            "llama.embedding_length": 4096,
            "llama.block_count": 32,
        },
        "modified_at": utc_timestamp(),
    }

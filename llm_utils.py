"""
Unified LLM utilities for the prompt pipelines.
Dispatches text generation to Google (Gemini) or OpenAI and rotates through every
(API key x model) pair until one call succeeds.

.env variables:
  TEXT_PROVIDER            - "google" or "openai" (default: google)
  GEMINI_API_KEY           - Fallback key when the caller passes no keys (GOOGLE_API_KEY also supported)
  OPENAI_API_KEY           - Fallback key for OpenAI
  MODEL_FALLBACKS_<NAME>   - Optional comma separated override of a model rank list (see config.py)
"""

import base64
import json
from typing import Any, Callable, TypeVar

import config

T = TypeVar("T")


class CredentialExhaustedError(RuntimeError):
    """Every (credential x model) pair failed, or there was no credential to try."""

    def __init__(self, message: str, attempts: int = 0, last_error: BaseException | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ResponseShapeError(ValueError):
    """Upstream content could not be parsed into the stage's declared contract."""


def mask_key(key: str) -> str:
    """Short form of a credential for logs: only the last 4 characters."""
    return f"...{key[-4:]}" if key else "..."


def resolve_credentials(raw_input: str | None = None, provider: str | None = None) -> list[str]:
    """
    Normalize a newline-delimited credential blob into an ordered list of keys.

    Lines are trimmed and blank lines dropped; order is preserved and duplicates are kept
    (repeating a key weights it in the rotation). When nothing usable remains, the
    process-level default key from .env is used if one is configured.

    Args:
        raw_input: Newline-delimited keys as stored in the user's configuration.
        provider: Provider whose default env key to fall back to.

    Returns:
        List of keys, possibly empty.
    """
    keys = [line.strip() for line in (raw_input or "").splitlines()]
    keys = [k for k in keys if k]
    if keys:
        return keys
    default = config.get_default_credential(provider)
    return [default] if default else []


def describe_upstream_error(error: BaseException | None) -> str:
    """Turn an upstream failure into a user-facing message."""
    message = str(error) if error is not None else ""
    lowered = message.lower()
    if "429" in message or "quota" in lowered or "resource has been exhausted" in lowered or "rate limit" in lowered:
        if "quota" in lowered or "exceeded" in lowered:
            return "API keys exhausted. Add more API keys to continue."
        return "Requests are too fast for the configured API keys. Slow down and try again."
    if "network" in lowered or "fetch" in lowered or "connection" in lowered or "timed out" in lowered:
        return "Network connection error. Check your connection and try again."
    return f"System error: {message}" if message else "All keys and models failed to generate content."


def _ensure_openai_schema(schema: dict) -> dict:
    """Ensure schema has additionalProperties: false for OpenAI Structured Outputs."""
    if schema.get("type") != "object":
        return schema
    result = dict(schema)
    if "additionalProperties" not in result:
        result["additionalProperties"] = False
    if "properties" in result:
        result["properties"] = {
            k: _ensure_openai_schema(v) if isinstance(v, dict) else v
            for k, v in result["properties"].items()
        }
        # Strict mode requires every property to be listed as required
        result["required"] = list(result["properties"])
    if "items" in result and isinstance(result["items"], dict):
        result["items"] = _ensure_openai_schema(result["items"])
    return result


def _wrap_array_schema(schema: dict) -> dict:
    """OpenAI structured output needs an object root; wrap array schemas in {"items": [...]}."""
    items = dict(schema)
    title = items.pop("title", "response")
    if isinstance(items.get("items"), dict):
        items["items"] = _ensure_openai_schema(items["items"])
    return {
        "type": "object",
        "title": title,
        "properties": {"items": items},
        "required": ["items"],
        "additionalProperties": False,
    }


def _generate_openai(
    messages: list[dict[str, str]],
    model: str,
    api_key: str,
    temperature: float,
    response_format: dict | None,
    schema: dict | None,
    images: list[bytes] | None,
    **kwargs: Any,
) -> str:
    from openai import OpenAI
    client = OpenAI(api_key=api_key)
    req_messages: list[dict[str, Any]] = [dict(m) for m in messages]
    if images:
        # Attach images to the last user turn as data URLs
        for m in reversed(req_messages):
            if m.get("role") == "user":
                parts: list[dict[str, Any]] = [{"type": "text", "text": m.get("content") or ""}]
                for img in images:
                    b64 = base64.b64encode(img).decode("ascii")
                    parts.append({"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{b64}"}})
                m["content"] = parts
                break
    req: dict[str, Any] = {
        "model": model,
        "messages": req_messages,
        "temperature": temperature,
        **kwargs,
    }
    wrapped = False
    if schema is not None:
        if schema.get("type") == "array":
            openai_schema = _wrap_array_schema(schema)
            wrapped = True
        else:
            openai_schema = _ensure_openai_schema(schema)
        req["response_format"] = {
            "type": "json_schema",
            "json_schema": {
                "name": openai_schema.get("title", "response"),
                "strict": True,
                "schema": openai_schema,
            },
        }
    elif response_format is not None:
        req["response_format"] = response_format
    response = client.chat.completions.create(**req)
    text = response.choices[0].message.content or ""
    if wrapped and text:
        try:
            text = json.dumps(json.loads(text)["items"], ensure_ascii=False)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ResponseShapeError(f"OpenAI returned an unwrappable array response: {e}") from e
    return text


def _generate_google(
    messages: list[dict[str, str]],
    model: str,
    api_key: str,
    temperature: float,
    response_format: dict | None,
    schema: dict | None,
    images: list[bytes] | None,
    **kwargs: Any,
) -> str:
    from google import genai
    from google.genai import types
    client = genai.Client(api_key=api_key)
    system_parts: list[str] = []
    chat_parts: list[tuple[str, str]] = []  # (role, content)
    for m in messages:
        role = (m.get("role") or "user").lower()
        content = (m.get("content") or "").strip()
        if not content:
            continue
        if role == "system":
            system_parts.append(content)
        else:
            chat_parts.append(("user" if role == "user" else "model", content))
    system_instruction = "\n\n".join(system_parts) if system_parts else None
    config_kw: dict[str, Any] = {"temperature": temperature, **kwargs}
    if schema is not None:
        config_kw["response_mime_type"] = "application/json"
        config_kw["response_json_schema"] = schema
    elif response_format == {"type": "json_object"}:
        config_kw["response_mime_type"] = "application/json"
    gen_config = types.GenerateContentConfig(system_instruction=system_instruction, **config_kw)
    # Single user turn: one contents string; multi-turn: fold history into one prompt
    if len(chat_parts) <= 1 and (not chat_parts or chat_parts[0][0] == "user"):
        prompt_text = chat_parts[0][1] if chat_parts else ""
    else:
        prompt_text = "\n\n".join(
            f"{'User' if role == 'user' else 'Assistant'}: {content}" for role, content in chat_parts
        )
    if images:
        contents: Any = [types.Part.from_bytes(data=img, mime_type="image/jpeg") for img in images]
        contents.append(prompt_text)
    else:
        contents = prompt_text
    response = client.models.generate_content(model=model, contents=contents, config=gen_config)
    if not response:
        raise RuntimeError("Google Gemini returned no response.")
    text = getattr(response, "text", None) or ""
    if not text and getattr(response, "candidates", None) and response.candidates:
        c0 = response.candidates[0]
        if getattr(c0, "content", None) and getattr(c0.content, "parts", None) and c0.content.parts:
            part = c0.content.parts[0]
            text = getattr(part, "text", None) or ""
    if not text:
        raise RuntimeError("Google Gemini returned empty text. The model may have blocked the response.")
    return text


def generate_text(
    messages: list[dict[str, str]],
    model: str | None = None,
    provider: str | None = None,
    api_key: str | None = None,
    temperature: float = 0.7,
    response_format: dict | None = None,
    response_json_schema: dict | None = None,
    images: list[bytes] | None = None,
    **kwargs: Any,
) -> str:
    """
    Generate text from messages using Google Gemini or OpenAI.

    Args:
        messages: List of {"role": "user"|"system"|"assistant", "content": str} (OpenAI shape).
        model: Model name; if None, the first entry of the "general" rank list.
        provider: "google" or "openai"; if None, use env TEXT_PROVIDER.
        api_key: Credential for this one call; if None, the default key from .env.
        temperature: Sampling temperature.
        response_format: Optional {"type": "json_object"} for JSON mode.
        response_json_schema: Optional JSON schema dict for structured output.
        images: Optional JPEG bytes attached to the (last) user turn.
        **kwargs: Passed through to the underlying API.

    Returns:
        The model reply as a single string.
    """
    prov = (provider or config.TEXT_PROVIDER).lower()
    if prov not in ("openai", "google"):
        raise ValueError(
            f"TEXT_PROVIDER must be 'google' or 'openai'. Got: {prov}. "
            "Set TEXT_PROVIDER in .env or pass provider=."
        )
    key = api_key or config.get_default_credential(prov)
    if not key:
        raise ValueError(
            f"No API key for provider '{prov}'. Pass api_key= or set "
            f"{'OPENAI_API_KEY' if prov == 'openai' else 'GEMINI_API_KEY'} in .env."
        )
    model_name = model or config.get_model_rank("general", prov)[0]
    generate = _generate_openai if prov == "openai" else _generate_google
    return generate(
        messages,
        model=model_name,
        api_key=key,
        temperature=temperature,
        response_format=response_format,
        schema=response_json_schema,
        images=images,
        **kwargs,
    )


class ModelClient:
    """A generation client bound to one (credential, model) pair."""

    def __init__(self, api_key: str, model: str, provider: str | None = None):
        if not api_key:
            raise ValueError("ModelClient requires a non-empty API key")
        self.api_key = api_key
        self.model = model
        self.provider = (provider or config.TEXT_PROVIDER).lower()

    def generate(
        self,
        prompt: str,
        images: list[bytes] | None = None,
        json_mode: bool = False,
        response_json_schema: dict | None = None,
        temperature: float = 0.7,
        system: str | None = None,
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return generate_text(
            messages,
            model=self.model,
            provider=self.provider,
            api_key=self.api_key,
            temperature=temperature,
            response_format={"type": "json_object"} if json_mode and response_json_schema is None else None,
            response_json_schema=response_json_schema,
            images=images,
        )

    def __repr__(self) -> str:
        return f"ModelClient(key={mask_key(self.api_key)}, model={self.model}, provider={self.provider})"


def generate_with_fallback(
    credentials: list[str],
    model_rank: list[str],
    operation: Callable[[Any], T],
    client_factory: Callable[[str, str], Any] = ModelClient,
    label: str = "",
) -> T:
    """
    Run operation(client) against every (credential x model) pair until one succeeds.

    Credentials are the outer loop, models the inner loop, both in the order given.
    Failures from client construction or from the operation (including response shape
    violations) are logged and the next pair is tried immediately; there is no backoff.

    Args:
        credentials: Ordered keys from resolve_credentials().
        model_rank: Ordered model identifiers, cheapest first.
        operation: Callable receiving a bound client and returning the parsed result.
        client_factory: Builds a client from (api_key, model).
        label: Stage name for log lines.

    Returns:
        The first successful operation result.

    Raises:
        CredentialExhaustedError: no credentials, or all N x M attempts failed.
    """
    tag = f"[FALLBACK]{f' [{label}]' if label else ''}"
    if not credentials:
        raise CredentialExhaustedError(
            "No API keys provided. Set GEMINI_API_KEY in .env or enter at least one key.",
            attempts=0,
        )
    if not model_rank:
        raise ValueError("model_rank must contain at least one model")

    last_error: BaseException | None = None
    attempts = 0
    for key in credentials:
        for model_name in model_rank:
            attempts += 1
            try:
                client = client_factory(key, model_name)
                return operation(client)
            except ResponseShapeError as e:
                print(f"{tag} Key({mask_key(key)}) Model({model_name}) shape violation: {e}")
                last_error = e
            except Exception as e:
                print(f"{tag} Key({mask_key(key)}) Model({model_name}) failed: {e}")
                last_error = e

    message = describe_upstream_error(last_error)
    print(f"[ERROR]{f' [{label}]' if label else ''} All {attempts} key/model combinations failed: {message}")
    raise CredentialExhaustedError(message, attempts=attempts, last_error=last_error) from last_error

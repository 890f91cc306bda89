# chat/llm.py

import os
import re
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

# Quiet down gRPC noise from the SDK
os.environ.setdefault("GRPC_VERBOSITY", "ERROR")
os.environ.setdefault("GRPC_TRACE", "")

from django.conf import settings
import google.ai.generativelanguage as glm
import google.generativeai as genai

from authentication.profiles import UserProfile
from utils.errors import ErrorCategory, classify_error, error_message
from utils.supabase_store import StoreError
from utils.system_config import GEMINI_API_KEY, ConfigRepository

from .prompts import CONNECTION_TEST_PROMPT, system_instruction

logger = logging.getLogger(__name__)


# ===== Exceptions =====

class GeminiError(RuntimeError):
    ...


class GeminiBlocked(GeminiError):
    ...


class CredentialMissing(GeminiError):
    ...


class FallbackExhausted(GeminiError):
    """Every candidate failed (or the chain stopped on a credential error)."""

    def __init__(self, attempts: Sequence["AttemptError"]):
        self.attempts = tuple(attempts)
        self.category = self.attempts[-1].category if self.attempts else ErrorCategory.UNKNOWN
        super().__init__("; ".join(f"{a.model}: {a.message}" for a in self.attempts) or "no_candidates")


# ===== Base config =====

DEFAULT_MODELS = ("gemini-3-flash-preview", "gemini-2.0-flash-exp", "gemini-1.5-flash")
TIERS = ("primary", "fallback", "safety")
TIER_LABELS = {"primary": "", "fallback": "Yedek", "safety": "Güvenlik"}

CONVERSATIONAL_TEMPERATURE = 0.7
INFORMATIONAL_TEMPERATURE = 0.3

DEFAULT_DEADLINE_S = 60   # per-request timeout (LLM SDK)

MODEL_MARKER = "*Model: "
_MARKER_RE = re.compile(r"\n---\n\*Model: ([^\s*()]+)")

MISSING_KEY_MSG = (
    "⚠️ HATA: Sistemde kayıtlı API Anahtarı bulunamadı. Lütfen 'API Anahtarı Ayarla' bölümünden "
    "geçerli bir Google Gemini API anahtarı giriniz veya yöneticinizden ortak anahtarı tanımlamasını isteyin."
)


@dataclass(frozen=True)
class ModelCandidate:
    name: str
    tier: str


@dataclass(frozen=True)
class AttemptError:
    model: str
    category: ErrorCategory
    message: str


@dataclass(frozen=True)
class GenerationResult:
    text: str
    model: str
    tier: str = "primary"
    errors: Tuple[AttemptError, ...] = ()

    @property
    def used_fallback(self) -> bool:
        return bool(self.errors)

    def annotated(self) -> str:
        label = TIER_LABELS.get(self.tier) or ""
        footer = f"{MODEL_MARKER}{self.model}" + (f" ({label})*" if label else "*")
        lines = [self.text, "", "---", footer]
        for err in self.errors:
            lines.append(f"*🔴 {err.model} hatası: {err.message}*")
        return "\n".join(lines)


def model_candidates(names: Optional[Iterable[str]] = None) -> List[ModelCandidate]:
    names = list(names or getattr(settings, "GEMINI_MODELS", None) or DEFAULT_MODELS)
    out = []
    for i, name in enumerate(names):
        tier = TIERS[i] if i < len(TIERS) else TIERS[-1]
        out.append(ModelCandidate(name=name, tier=tier))
    return out


def served_by(text: str) -> Optional[str]:
    """Model id from an annotated reply, or None for diagnostics."""
    m = _MARKER_RE.search(text or "")
    return m.group(1) if m else None


# ===== Payload helpers =====

def _entry_role_text(entry: Any) -> Tuple[str, str]:
    if isinstance(entry, Mapping):
        role, text = entry.get("role"), entry.get("text")
    else:
        role, text = getattr(entry, "role", None), getattr(entry, "text", None)
    return ("model" if role == "model" else "user"), str(text or "")


def build_contents(prompt: str, history: Iterable[Any] = ()) -> List[dict]:
    """
    Role-annotated payload: history first, prompt last.
    Consecutive turns with the same role are merged so roles alternate.
    """
    contents: List[dict] = []
    turns = [_entry_role_text(h) for h in history]
    turns.append(("user", str(prompt or "")))
    for role, text in turns:
        if not text.strip():
            continue
        if contents and contents[-1]["role"] == role:
            contents[-1]["parts"].append({"text": text})
        else:
            contents.append({"role": role, "parts": [{"text": text}]})
    return contents


def _extract_text(resp) -> str:
    """
    Safely extract text from Gemini SDK / mock responses.

    Supports resp.candidates[..].content.parts[..].text, resp.text and plain strings.
    """
    if isinstance(resp, str):
        return resp.strip()

    candidates = getattr(resp, "candidates", None) or []
    chunks = []
    for c in candidates:
        content = getattr(c, "content", None)
        for p in getattr(content, "parts", None) or []:
            txt = getattr(p, "text", "") or ""
            if isinstance(txt, str) and txt.strip():
                chunks.append(txt)
        if chunks:
            return "".join(chunks).strip()

    try:
        t = getattr(resp, "text", "") or ""
    except ValueError:
        # the SDK raises on .text when the candidate has no parts
        return ""
    return t.strip() if isinstance(t, str) else ""


def _check_block(resp) -> None:
    fb = getattr(resp, "prompt_feedback", None)
    if fb:
        br = getattr(fb, "block_reason", None)
        if br:
            raise GeminiBlocked(f"blocked: {br}")


# ===== Credentials =====

def resolve_api_key(override: Optional[str] = None, *, config: Optional[ConfigRepository] = None) -> str:
    """
    Per-user override, then the process-level GEMINI_API_KEY setting, then the
    shared key an admin stored in dto_config.
    """
    if override and override.strip():
        return override.strip()

    process_key = getattr(settings, "GEMINI_API_KEY", None)
    if process_key:
        return process_key

    config = config or ConfigRepository()
    try:
        shared = config.get(GEMINI_API_KEY)
    except StoreError as e:
        logger.warning("shared_key_lookup_failed category=%s err=%s", e.category.value, e)
        raise CredentialMissing(f"shared key lookup failed: {e.message}") from e
    if shared and shared.value.strip():
        return shared.value.strip()
    raise CredentialMissing("GEMINI_API_KEY missing")


# ===== Retry policy =====

def run_fallback_chain(
    candidates: Sequence[ModelCandidate],
    attempt: Callable[[ModelCandidate], str],
) -> GenerationResult:
    """
    Try each candidate in order and return the first success.
    A credential failure stops the chain, since every model would reject the same key.
    """
    errors: List[AttemptError] = []
    for cand in candidates:
        try:
            text = attempt(cand)
        except Exception as e:
            category = classify_error(e)
            errors.append(AttemptError(model=cand.name, category=category, message=error_message(e)))
            if category == ErrorCategory.AUTH:
                logger.warning("gemini_auth_error model=%s err=%s; not trying other models", cand.name, e)
                break
            logger.warning("gemini_model_failed model=%s category=%s err=%s", cand.name, category.value, e)
            continue
        return GenerationResult(text=text, model=cand.name, tier=cand.tier, errors=tuple(errors))
    raise FallbackExhausted(errors)


# ===== Diagnostics =====

def _attempt_lines(attempts: Sequence[AttemptError]) -> str:
    return "\n".join(f"- {a.model}: {a.message}" for a in attempts)


def diagnostic_message(exc: Exception) -> str:
    """User-facing text for a failed generation, by cause."""
    if isinstance(exc, CredentialMissing):
        return MISSING_KEY_MSG

    attempts = getattr(exc, "attempts", ())
    category = getattr(exc, "category", None) or classify_error(exc)
    details = _attempt_lines(attempts) if attempts else error_message(exc)

    if category == ErrorCategory.AUTH:
        root = attempts[-1].message if attempts else error_message(exc)
        return f"⚠️ API ANAHTARI HATASI: {root}\n\nLütfen menüden yeni bir anahtar giriniz."
    if category == ErrorCategory.RATE_LIMIT:
        return f"⚠️ KOTA AŞIMI: Kota dolmuş veya istek sınırına ulaşıldı.\n{details}"
    if category == ErrorCategory.UNAVAILABLE:
        return f"⚠️ SERVİS ULAŞILAMIYOR: Model servisi şu an yanıt vermiyor, lütfen biraz sonra tekrar deneyin.\n{details}"
    return f"⚠️ BAĞLANTI HATASI: Hiçbir model yanıt vermedi.\n{details}"


# ===== SOLID components =====

class LLMClient(Protocol):
    def generate(
        self,
        model: str,
        contents: Sequence[dict],
        *,
        system_instruction: str,
        temperature: float,
        api_key: str,
        timeout_s: int,
    ) -> object:
        ...


class GeminiLLMClient:
    """
    Adapter over google.generativeai GenerativeModel.

    Keys differ per user, so every model gets a service client bound to its
    own key instead of the process-wide one set by ``genai.configure``.
    """

    def __init__(self):
        self._clients = {}
        self._lock = threading.Lock()

    def _service_client(self, api_key: str) -> glm.GenerativeServiceClient:
        with self._lock:
            svc = self._clients.get(api_key)
            if svc is None:
                svc = glm.GenerativeServiceClient(client_options={"api_key": api_key})
                self._clients[api_key] = svc
            return svc

    def generate(
        self,
        model: str,
        contents: Sequence[dict],
        *,
        system_instruction: str,
        temperature: float,
        api_key: str,
        timeout_s: int,
    ) -> object:
        m = genai.GenerativeModel(model, system_instruction=system_instruction)
        m._client = self._service_client(api_key)
        return m.generate_content(
            list(contents),
            generation_config={"temperature": temperature},
            request_options={"timeout": timeout_s},
        )


class ResponseGenerator:
    """Builds the payload, resolves the key and walks the model candidates."""

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        candidates: Optional[Sequence[ModelCandidate]] = None,
        config: Optional[ConfigRepository] = None,
        timeout_s: Optional[int] = None,
    ):
        self.llm = llm or GeminiLLMClient()
        self.candidates = list(candidates) if candidates is not None else model_candidates()
        self.config = config
        self.timeout_s = timeout_s or getattr(settings, "GEMINI_TIMEOUT_S", DEFAULT_DEADLINE_S)

    def _call(self, cand: ModelCandidate, contents, instruction: str, temperature: float, api_key: str) -> str:
        resp = self.llm.generate(
            cand.name,
            contents,
            system_instruction=instruction,
            temperature=temperature,
            api_key=api_key,
            timeout_s=self.timeout_s,
        )
        _check_block(resp)
        text = _extract_text(resp)
        if not text:
            raise GeminiError("empty_response")
        return text

    def generate(
        self,
        prompt: str,
        history: Iterable[Any] = (),
        profile: Optional[UserProfile] = None,
        *,
        informational: bool = False,
        api_key_override: Optional[str] = None,
    ) -> GenerationResult:
        """Raises CredentialMissing / FallbackExhausted."""
        api_key = resolve_api_key(api_key_override, config=self.config)
        contents = build_contents(prompt, history)
        instruction = system_instruction(profile, informational=informational)
        temperature = INFORMATIONAL_TEMPERATURE if informational else CONVERSATIONAL_TEMPERATURE

        result = run_fallback_chain(
            self.candidates,
            lambda cand: self._call(cand, contents, instruction, temperature, api_key),
        )
        if result.used_fallback:
            logger.info("gemini_served_by_fallback model=%s tier=%s", result.model, result.tier)
        return result

    def respond(
        self,
        prompt: str,
        history: Iterable[Any] = (),
        profile: Optional[UserProfile] = None,
        *,
        informational: bool = False,
        api_key_override: Optional[str] = None,
    ) -> str:
        """Annotated reply or a diagnostic string; never raises."""
        try:
            result = self.generate(
                prompt, history, profile,
                informational=informational, api_key_override=api_key_override,
            )
        except Exception as e:
            logger.error("gemini_generation_failed err=%s", e)
            return diagnostic_message(e)
        return result.annotated()

    def probe(self, api_key_override: Optional[str] = None) -> dict:
        """One short call against the primary model."""
        if not self.candidates:
            return {"success": False, "message": "Tanımlı model yok."}
        primary = self.candidates[0]
        try:
            api_key = resolve_api_key(api_key_override, config=self.config)
            text = self._call(
                primary,
                build_contents(CONNECTION_TEST_PROMPT),
                system_instruction(None, informational=True),
                INFORMATIONAL_TEMPERATURE,
                api_key,
            )
        except CredentialMissing:
            return {"success": False, "message": MISSING_KEY_MSG}
        except Exception as e:
            category = classify_error(e)
            detail = error_message(e)
            if category == ErrorCategory.AUTH:
                detail = "API Anahtarı GEÇERSİZ. Lütfen Google AI Studio'dan yeni bir anahtar alıp girin."
            elif category == ErrorCategory.RATE_LIMIT:
                detail = "KOTA AŞIMI. Hesabınızın kotası dolmuş veya faturalandırma ayarlanmamış."
            logger.warning("gemini_probe_failed model=%s category=%s err=%s", primary.name, category.value, e)
            return {"success": False, "message": f"Ana Model ({primary.name}) Hatası: {detail}"}
        return {"success": True, "message": f"BAŞARILI!\n\nKullanılan Model: {primary.name}\nCevap: {text}"}


# ===== Public API =====

def generate_response(
    prompt: str,
    history: Iterable[Any] = (),
    profile: Optional[UserProfile] = None,
    *,
    informational: bool = False,
    api_key_override: Optional[str] = None,
) -> str:
    """
    Reply text annotated with the model that served it, or a diagnostic
    string. No exception escapes.
    """
    return ResponseGenerator().respond(
        prompt, history, profile,
        informational=informational, api_key_override=api_key_override,
    )


def probe_connection(api_key_override: Optional[str] = None) -> dict:
    return ResponseGenerator().probe(api_key_override)

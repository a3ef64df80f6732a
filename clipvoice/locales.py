"""Localized status and error messages.

Responsibilities:
- Provide user-visible status strings for job lifecycle transitions.
- Map taxonomy error codes to localized messages, with raw text as fallback.
"""

from __future__ import annotations

from .errors import ErrorCode, coerce_error_code

DEFAULT_LANGUAGE = "en"

_MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "statusStarting": "Starting...",
        "statusExtracting": "Extracting content...",
        "statusTranslating": "Translating content...",
        "statusSummarizing": "Summarizing content...",
        "statusGenerating": "Generating output...",
        "statusPreparingAudio": "Preparing text for narration...",
        "statusConvertingSegment": "Converting segment {current}/{total} to speech...",
        "statusAssemblingAudio": "Assembling audio file...",
        "statusDone": "Done!",
        "statusCancelled": "Processing cancelled",
        "statusError": "Error",
        "statusInterrupted": "Processing was interrupted. Please start again.",
        "statusReady": "Ready",
        "errorAuth": "Authentication failed. Check your API key.",
        "errorRateLimit": "Rate limit exceeded. Please wait and try again.",
        "errorTimeout": "The request timed out. Please try again.",
        "errorNetwork": "Network error. Check your connection.",
        "errorParse": "The provider returned an unreadable response.",
        "errorProvider": "The provider reported a server error. Try again later.",
        "errorValidation": "The request was rejected as invalid.",
        "errorUnknown": "An unexpected error occurred.",
    },
    "ru": {
        "statusStarting": "Запуск...",
        "statusExtracting": "Извлечение контента...",
        "statusTranslating": "Перевод контента...",
        "statusSummarizing": "Создание краткого содержания...",
        "statusGenerating": "Создание файла...",
        "statusPreparingAudio": "Подготовка текста для озвучки...",
        "statusConvertingSegment": "Озвучивание сегмента {current}/{total}...",
        "statusAssemblingAudio": "Сборка аудиофайла...",
        "statusDone": "Готово!",
        "statusCancelled": "Обработка отменена",
        "statusError": "Ошибка",
        "statusInterrupted": "Обработка была прервана. Запустите её снова.",
        "statusReady": "Готово к работе",
        "errorAuth": "Ошибка авторизации. Проверьте API-ключ.",
        "errorRateLimit": "Превышен лимит запросов. Подождите и повторите.",
        "errorTimeout": "Время ожидания запроса истекло. Повторите попытку.",
        "errorNetwork": "Ошибка сети. Проверьте подключение.",
        "errorParse": "Провайдер вернул нечитаемый ответ.",
        "errorProvider": "Ошибка сервера провайдера. Повторите позже.",
        "errorValidation": "Запрос отклонён как некорректный.",
        "errorUnknown": "Произошла непредвиденная ошибка.",
    },
    "de": {
        "statusStarting": "Wird gestartet...",
        "statusExtracting": "Inhalt wird extrahiert...",
        "statusTranslating": "Inhalt wird übersetzt...",
        "statusSummarizing": "Zusammenfassung wird erstellt...",
        "statusGenerating": "Ausgabe wird erstellt...",
        "statusPreparingAudio": "Text wird für die Vertonung vorbereitet...",
        "statusConvertingSegment": "Segment {current}/{total} wird vertont...",
        "statusAssemblingAudio": "Audiodatei wird zusammengesetzt...",
        "statusDone": "Fertig!",
        "statusCancelled": "Verarbeitung abgebrochen",
        "statusError": "Fehler",
        "statusInterrupted": "Die Verarbeitung wurde unterbrochen. Bitte neu starten.",
        "statusReady": "Bereit",
        "errorAuth": "Authentifizierung fehlgeschlagen. API-Schlüssel prüfen.",
        "errorRateLimit": "Anfragelimit überschritten. Bitte später erneut versuchen.",
        "errorTimeout": "Zeitüberschreitung der Anfrage. Bitte erneut versuchen.",
        "errorNetwork": "Netzwerkfehler. Verbindung prüfen.",
        "errorParse": "Der Anbieter hat eine unlesbare Antwort geliefert.",
        "errorProvider": "Serverfehler beim Anbieter. Später erneut versuchen.",
        "errorValidation": "Die Anfrage wurde als ungültig abgelehnt.",
        "errorUnknown": "Ein unerwarteter Fehler ist aufgetreten.",
    },
}

ERROR_MESSAGE_KEYS: dict[ErrorCode, str] = {
    ErrorCode.AUTH_ERROR: "errorAuth",
    ErrorCode.RATE_LIMIT: "errorRateLimit",
    ErrorCode.TIMEOUT: "errorTimeout",
    ErrorCode.NETWORK_ERROR: "errorNetwork",
    ErrorCode.PARSE_ERROR: "errorParse",
    ErrorCode.PROVIDER_ERROR: "errorProvider",
    ErrorCode.VALIDATION_ERROR: "errorValidation",
    ErrorCode.UNKNOWN_ERROR: "errorUnknown",
}


def supported_languages() -> tuple[str, ...]:
    """Return language codes with a message catalog."""

    return tuple(sorted(_MESSAGES))


def translate(key: str, language: str | None = None, **params: object) -> str:
    """Return a localized message, falling back to English and then to the key."""

    normalized = (language or DEFAULT_LANGUAGE).lower()
    catalog = _MESSAGES.get(normalized) or _MESSAGES.get(normalized.split("-")[0], {})
    template = catalog.get(key) or _MESSAGES[DEFAULT_LANGUAGE].get(key)
    if template is None:
        return key
    return template.format(**params) if params else template


def error_message(
    error_code: object,
    language: str | None = None,
    fallback: str | None = None,
) -> str:
    """Return the localized message for an error code.

    The raw `fallback` text is used only when the code has no mapping.
    """

    code = coerce_error_code(error_code)
    if code is not None:
        return translate(ERROR_MESSAGE_KEYS[code], language)
    if fallback:
        return fallback
    return translate("errorUnknown", language)

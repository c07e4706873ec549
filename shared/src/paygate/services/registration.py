"""Bot registration with Telegram: command menu and webhook URL.

Registration is idempotent, so it is simply repeated after every change to
an active integration.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from paygate.i18n import translate
from paygate.models.enums import Locale
from paygate.models.tenant import BotIntegration

from .telegram_client import TelegramClientFactory, is_ok
from .tenant_registry import BotIntegrationRegistry

logger = logging.getLogger(__name__)

COMMANDS = ("start", "status", "cancel")


class RegistrationError(Exception):
    """Raised when Telegram rejects a registration call."""

    pass


def localized_commands(locale: Locale) -> list[dict[str, str]]:
    return [
        {"command": command, "description": translate(locale, f"commands.{command}")}
        for command in COMMANDS
    ]


class BotRegistrar:
    """Pushes the command menu and webhook URL of an integration to Telegram."""

    def __init__(self, telegram: TelegramClientFactory, webhook_url: str) -> None:
        self._telegram = telegram
        self._webhook_url = webhook_url

    def register(self, integration: BotIntegration) -> None:
        """Register commands and webhook for one integration.

        Raises:
            RegistrationError: If Telegram does not accept the webhook.
        """
        client = self._telegram.for_integration(integration)

        for locale in Locale:
            result = client.set_my_commands(localized_commands(locale), language_code=locale.value)
            if not is_ok(result):
                logger.warning(
                    "setMyCommands (%s) failed for %s: %s",
                    locale.value,
                    integration.integration_id,
                    result,
                )
        # Default menu for clients in any other language
        client.set_my_commands(localized_commands(integration.default_locale))

        result = client.set_webhook(
            self._webhook_url,
            secret_token=integration.routing_secret.get_secret_value(),
        )
        if not is_ok(result):
            description = result.get("description") if isinstance(result, dict) else None
            raise RegistrationError(
                f"setWebhook failed for {integration.integration_id}: {description or 'no response'}"
            )
        logger.info("Registered webhook for %s at %s", integration.integration_id, self._webhook_url)


class RegistrationScheduler:
    """Runs registrations in the background with retries."""

    def __init__(
        self,
        registrar: BotRegistrar,
        registry: BotIntegrationRegistry,
        max_attempts: int = 5,
        wait: wait_base | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self._registrar = registrar
        self._registry = registry
        self._max_attempts = max_attempts
        self._wait = wait or wait_exponential(multiplier=1, min=1, max=60)
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="registration")

    def schedule(self, integration_id: str) -> Future:
        """Queue registration of an integration.

        Returns:
            Future resolving to True when registration succeeded
        """
        logger.info("Scheduling registration for %s", integration_id)
        return self._executor.submit(self.run, integration_id)

    def run(self, integration_id: str) -> bool:
        """Register an integration, reloading it first."""
        integration = self._registry.get(integration_id)
        if integration is None or not integration.active:
            logger.info("Skipping registration for missing or inactive %s", integration_id)
            return False

        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(RegistrationError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            retrying(self._registrar.register, integration)
        except RetryError as e:
            logger.error(
                "Registration for %s failed after %d attempts: %s",
                integration_id,
                self._max_attempts,
                e.last_attempt.exception(),
            )
            return False
        except Exception:
            logger.exception("Registration for %s failed", integration_id)
            return False
        return True

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

"""Bot message catalog for the supported locales.

Messages are Telegram HTML. Lookups fall back to English, then to the key.
"""

from .models.enums import Locale

MESSAGES: dict[Locale, dict[str, str]] = {
    Locale.EN: {
        "offer.button_get_started": "Get started",
        "offer.button_maybe_later": "Maybe later",
        "offer.response_not_ready": "No problem! Send /start whenever you are ready.",
        "plans.title": "<b>Choose your plan:</b>",
        "plans.none_available": "No plans are available right now. Please try again later.",
        "plans.interval_day": "daily",
        "plans.interval_week": "weekly",
        "plans.interval_month": "monthly",
        "plans.interval_year": "yearly",
        "plans.interval_every": "every {count} {unit}s",
        "plans.one_time": "one-time",
        "plans.unsubscribe_note": "\n\nYou can unsubscribe at any time with /status.",
        "payment.generating": "Generating your payment link...",
        "payment.terms": (
            "<b>Almost there!</b>\n\n"
            "Account: {account_info}\n\n"
            "Press the button below to complete your payment. "
            "You will get access to the channel right after it goes through.{unsubscribe_note}"
        ),
        "payment.button_complete": "Complete payment",
        "payment.account_fallback": "User",
        "errors.something_wrong": "Something went wrong. Please try again later.",
        "status.active": "<b>Your subscription is active.</b>",
        "status.expiring": "Your subscription is active and will end on <b>{ends_at}</b>.",
        "status.cancelled": "Your subscription was cancelled. Access ends on <b>{ends_at}</b>.",
        "status.none": "You have no subscription yet. Send /start to subscribe.",
        "status.error": "Could not check your subscription right now. Please try again later.",
        "status.ends_at_fallback": "the end of the current period",
        "status.button_open_channel": "Open channel",
        "status.button_manage_subscription": "Manage subscription",
        "cancel.message": "Cancelled. Send /start to begin again.",
        "access.already_member": "Payment received. You already have access to the channel.",
        "access.added": "Payment received. You have been added to the channel!",
        "access.invite_link": "Payment received! Use the button below to join the channel.",
        "access.contact_support": (
            "Payment received, but we could not create a channel invite for you. "
            "Please contact support."
        ),
        "access.button_join_channel": "Join channel",
        "commands.start": "Start the bot and subscribe",
        "commands.status": "Check subscription status and manage account",
        "commands.cancel": "Cancel current operation",
    },
    Locale.UK: {
        "offer.button_get_started": "Почати",
        "offer.button_maybe_later": "Можливо пізніше",
        "offer.response_not_ready": "Без проблем! Надішліть /start, коли будете готові.",
        "plans.title": "<b>Оберіть план:</b>",
        "plans.none_available": "Зараз немає доступних планів. Спробуйте пізніше.",
        "plans.interval_day": "щодня",
        "plans.interval_week": "щотижня",
        "plans.interval_month": "щомісяця",
        "plans.interval_year": "щороку",
        "plans.interval_every": "кожні {count} ({unit})",
        "plans.one_time": "одноразово",
        "plans.unsubscribe_note": "\n\nВи можете скасувати підписку будь-коли через /status.",
        "payment.generating": "Створюємо посилання на оплату...",
        "payment.terms": (
            "<b>Майже готово!</b>\n\n"
            "Акаунт: {account_info}\n\n"
            "Натисніть кнопку нижче, щоб завершити оплату. "
            "Доступ до каналу з'явиться одразу після оплати.{unsubscribe_note}"
        ),
        "payment.button_complete": "Завершити оплату",
        "payment.account_fallback": "Користувач",
        "errors.something_wrong": "Щось пішло не так. Спробуйте пізніше.",
        "status.active": "<b>Ваша підписка активна.</b>",
        "status.expiring": "Ваша підписка активна і завершиться <b>{ends_at}</b>.",
        "status.cancelled": "Вашу підписку скасовано. Доступ діє до <b>{ends_at}</b>.",
        "status.none": "У вас ще немає підписки. Надішліть /start, щоб підписатися.",
        "status.error": "Не вдалося перевірити підписку. Спробуйте пізніше.",
        "status.ends_at_fallback": "кінця поточного періоду",
        "status.button_open_channel": "Відкрити канал",
        "status.button_manage_subscription": "Керувати підпискою",
        "cancel.message": "Скасовано. Надішліть /start, щоб почати знову.",
        "access.already_member": "Оплату отримано. У вас вже є доступ до каналу.",
        "access.added": "Оплату отримано. Вас додано до каналу!",
        "access.invite_link": "Оплату отримано! Натисніть кнопку нижче, щоб приєднатися до каналу.",
        "access.contact_support": (
            "Оплату отримано, але не вдалося створити запрошення до каналу. "
            "Будь ласка, зверніться до підтримки."
        ),
        "access.button_join_channel": "Приєднатися до каналу",
        "commands.start": "Запустити бота та підписатися",
        "commands.status": "Статус підписки та керування акаунтом",
        "commands.cancel": "Скасувати поточну дію",
    },
    Locale.RU: {
        "offer.button_get_started": "Начать",
        "offer.button_maybe_later": "Может позже",
        "offer.response_not_ready": "Без проблем! Отправьте /start, когда будете готовы.",
        "plans.title": "<b>Выберите план:</b>",
        "plans.none_available": "Сейчас нет доступных планов. Попробуйте позже.",
        "plans.interval_day": "ежедневно",
        "plans.interval_week": "еженедельно",
        "plans.interval_month": "ежемесячно",
        "plans.interval_year": "ежегодно",
        "plans.interval_every": "каждые {count} ({unit})",
        "plans.one_time": "разово",
        "plans.unsubscribe_note": "\n\nВы можете отменить подписку в любое время через /status.",
        "payment.generating": "Создаём ссылку на оплату...",
        "payment.terms": (
            "<b>Почти готово!</b>\n\n"
            "Аккаунт: {account_info}\n\n"
            "Нажмите кнопку ниже, чтобы завершить оплату. "
            "Доступ к каналу появится сразу после оплаты.{unsubscribe_note}"
        ),
        "payment.button_complete": "Завершить оплату",
        "payment.account_fallback": "Пользователь",
        "errors.something_wrong": "Что-то пошло не так. Попробуйте позже.",
        "status.active": "<b>Ваша подписка активна.</b>",
        "status.expiring": "Ваша подписка активна и закончится <b>{ends_at}</b>.",
        "status.cancelled": "Ваша подписка отменена. Доступ действует до <b>{ends_at}</b>.",
        "status.none": "У вас пока нет подписки. Отправьте /start, чтобы подписаться.",
        "status.error": "Не удалось проверить подписку. Попробуйте позже.",
        "status.ends_at_fallback": "конца текущего периода",
        "status.button_open_channel": "Открыть канал",
        "status.button_manage_subscription": "Управлять подпиской",
        "cancel.message": "Отменено. Отправьте /start, чтобы начать заново.",
        "access.already_member": "Оплата получена. У вас уже есть доступ к каналу.",
        "access.added": "Оплата получена. Вы добавлены в канал!",
        "access.invite_link": "Оплата получена! Нажмите кнопку ниже, чтобы присоединиться к каналу.",
        "access.contact_support": (
            "Оплата получена, но не удалось создать приглашение в канал. "
            "Пожалуйста, свяжитесь с поддержкой."
        ),
        "access.button_join_channel": "Присоединиться к каналу",
        "commands.start": "Запустить бота и подписаться",
        "commands.status": "Статус подписки и управление аккаунтом",
        "commands.cancel": "Отменить текущее действие",
    },
}


def translate(locale: Locale, key: str, **values: object) -> str:
    """Look up a message and fill its placeholders."""
    template = MESSAGES.get(locale, {}).get(key) or MESSAGES[Locale.EN].get(key, key)
    return template.format(**values) if values else template


def resolve_locale(language_code: str | None, default: Locale) -> Locale:
    """Pick a locale from a Telegram language_code.

    Only the primary subtag counts ("uk-UA" -> uk); anything unsupported
    falls back to the default.
    """
    if not language_code:
        return default
    primary = language_code.split("-")[0].split("_")[0].strip().lower()
    try:
        return Locale(primary)
    except ValueError:
        return default

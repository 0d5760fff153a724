"""CLI para registrar peso y comidas y consultar resúmenes."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from diet_tracker.config import Settings, load_settings
from diet_tracker.errors import AuthError, StorageError, ValidationError
from diet_tracker.excel_writer import ExcelLayout, write_history_xlsx
from diet_tracker.logger import setup_logging
from diet_tracker.metrics import (
    consecutive_day_streak,
    daily_average_series,
    group_by_day,
    todays_calories,
    todays_weights,
    trailing_average,
    weight_change,
)
from diet_tracker.model import (
    MealEntry,
    ReminderTime,
    TimeOfDay,
    WeightEntry,
    parse_kilocalories,
    parse_kilograms,
    validate_note,
)
from diet_tracker.repository import Repository
from diet_tracker.session import IdentitySession, LocalProfileProvider
from diet_tracker.storage import SQLiteStore


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per action."""
    parser = argparse.ArgumentParser(
        prog="diet-tracker",
        description="Registro diario de peso (mañana/noche) y comidas.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    weight = sub.add_parser("weight", help="Registrar peso (kg, 30-300).")
    weight.add_argument("kg", help="Peso en kg, p. ej. 67.8 o 67,8.")
    weight.add_argument(
        "--tod",
        choices=[t.value for t in TimeOfDay],
        default=TimeOfDay.AM.value,
        help="Momento del día (default: am).",
    )

    meal = sub.add_parser("meal", help="Registrar una comida.")
    meal.add_argument("note", help="Descripción de la comida.")
    meal.add_argument("--kcal", default=None, help="Calorías (opcional).")

    sub.add_parser("today", help="Resumen de hoy.")
    sub.add_parser("history", help="Historial por día (más reciente primero).")

    trend = sub.add_parser("trend", help="Promedio diario y promedio móvil.")
    trend.add_argument(
        "--window",
        type=int,
        default=None,
        help="Días del promedio móvil (default: DIET_TRACKER_TREND_WINDOW).",
    )

    sub.add_parser("streak", help="Días consecutivos con peso registrado.")

    remind = sub.add_parser("remind", help="Ver o fijar recordatorios (H:MM).")
    remind.add_argument("--am", default=None, help="Hora del recordatorio matutino.")
    remind.add_argument("--pm", default=None, help="Hora del recordatorio nocturno.")

    clear = sub.add_parser("clear", help="Borrar todos los registros.")
    clear.add_argument("--yes", action="store_true", help="Confirmar el borrado.")

    export = sub.add_parser("export", help="Exportar historial a Excel.")
    export.add_argument("--out", default=None, help="Ruta del .xlsx de salida.")

    sub.add_parser("whoami", help="Mostrar la identidad configurada.")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    return build_parser().parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Exit code: 0 on success, 1 on storage/auth errors, 2 on invalid input.
    """
    ns = parse_args(argv)
    try:
        settings = load_settings()
        setup_logging(settings)
        return asyncio.run(_dispatch(ns, settings))
    except ValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except (StorageError, AuthError) as exc:
        print(f"Error ({type(exc).__name__}): {exc}", file=sys.stderr)
        return 1


async def _dispatch(ns: argparse.Namespace, settings: Settings) -> int:
    if ns.command == "whoami":
        return await _cmd_whoami(settings)

    repo = await Repository.open(SQLiteStore(settings.db_path))
    now = datetime.now(tz=settings.timezone)

    if ns.command == "weight":
        entry = WeightEntry(
            timestamp=now,
            time_of_day=TimeOfDay(ns.tod),
            kilograms=parse_kilograms(ns.kg),
        )
        await repo.add_weight(entry)
        print(f"OK: peso ({entry.time_of_day.value}) {entry.kilograms:.1f} kg")
        return 0

    if ns.command == "meal":
        meal = MealEntry(
            timestamp=now,
            note=validate_note(ns.note),
            kilocalories=parse_kilocalories(ns.kcal),
        )
        await repo.add_meal(meal)
        print(f"OK: comida '{meal.note}'")
        return 0

    if ns.command == "today":
        _print_today(repo, now)
        return 0

    if ns.command == "history":
        _print_history(repo)
        return 0

    if ns.command == "trend":
        window = ns.window if ns.window is not None else settings.trend_window
        if window < 1:
            raise ValidationError("--window must be positive")
        _print_trend(repo, window)
        return 0

    if ns.command == "streak":
        print(f"Racha: {consecutive_day_streak(repo.weights, now)} días")
        return 0

    if ns.command == "remind":
        return await _cmd_remind(repo, ns.am, ns.pm)

    if ns.command == "clear":
        if not ns.yes:
            print("Nada borrado: usa --yes para confirmar.", file=sys.stderr)
            return 2
        await repo.clear_all()
        print("OK: registros borrados.")
        return 0

    if ns.command == "export":
        out_path = (
            Path(ns.out).expanduser()
            if ns.out
            else settings.db_path.parent
            / "salidas"
            / f"historial_{now.strftime('%Y-%m-%d_%H-%M-%S')}.xlsx"
        )
        days = group_by_day(repo.weights, repo.meals)
        write_history_xlsx(days, out_path, ExcelLayout())
        print(f"OK: Output: {out_path}")
        return 0

    raise ValueError(f"Unknown command: {ns.command}")


def _fmt_kg(value: float | None) -> str:
    return "-" if value is None else f"{value:.1f} kg"


def _print_today(repo: Repository, now: datetime) -> None:
    today = todays_weights(repo.weights, now)
    print(f"Peso mañana: {_fmt_kg(today.am.kilograms if today.am else None)}")
    print(f"Peso noche: {_fmt_kg(today.pm.kilograms if today.pm else None)}")
    print(f"Calorías: {todays_calories(repo.meals, now)} kcal")
    print(f"Racha: {consecutive_day_streak(repo.weights, now)} días")


def _print_history(repo: Repository) -> None:
    days = group_by_day(repo.weights, repo.meals)
    if not days:
        print("Sin registros.")
        return
    for d in days:
        am = _fmt_kg(d.am.kilograms if d.am else None)
        pm = _fmt_kg(d.pm.kilograms if d.pm else None)
        print(f"{d.day:%Y/%m/%d}  mañana: {am} / noche: {pm}")
        print(f"  Calorías: {d.total_kilocalories} kcal")
        for m in d.meals:
            kcal = "" if m.kilocalories is None else f" ({m.kilocalories} kcal)"
            print(f"  - {m.note}{kcal}")


def _print_trend(repo: Repository, window: int) -> None:
    series = daily_average_series(repo.weights)
    if not series:
        print("Sin datos de peso.")
        return
    for point in series:
        print(f"{point.day:%Y/%m/%d}  {point.mean_kg:.1f} kg")
    avg = trailing_average(series, window)
    print(f"Promedio últimos {window} días: {_fmt_kg(avg)}")
    change = weight_change(series)
    if change is not None:
        print(f"Cambio: {change:+.1f} kg")


async def _cmd_remind(
    repo: Repository, am_raw: str | None, pm_raw: str | None
) -> int:
    if am_raw is None and pm_raw is None:
        slots = (("mañana", repo.reminder_am), ("noche", repo.reminder_pm))
        for label, value in slots:
            text = value.format() if value else "sin definir"
            print(f"Recordatorio {label}: {text}")
        return 0
    await repo.set_reminder(am=_parse_time_arg(am_raw), pm=_parse_time_arg(pm_raw))
    print("OK: recordatorios guardados.")
    return 0


def _parse_time_arg(raw: str | None) -> ReminderTime | None:
    if raw is None:
        return None
    value = ReminderTime.parse(raw)
    if value is None:
        raise ValidationError(f"Invalid time {raw!r}; expected H:MM")
    return value


async def _cmd_whoami(settings: Settings) -> int:
    provider = LocalProfileProvider(settings.user_name, settings.user_email)
    with IdentitySession(provider) as session:
        try:
            await session.sign_in()
        except AuthError as exc:
            print(f"Sin sesión: {exc}")
        identity = session.current_display_identity()
        print(f"Nombre: {identity.name or '-'}")
        print(f"Email: {identity.email or '-'}")
    return 0

"""Web-based dashboard for LifeOS.

A lightweight Flask app serving a single-page dashboard with:
- Focus timer controls
- XP profile and today's focus
- Calendar agenda with recurring events
- Settings editor
"""

import logging
import threading
import uuid
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from dateutil import parser as date_parser
from flask import Flask, jsonify, render_template_string, request

from lifeos.core.agenda import build_agenda, cancel_occurrence
from lifeos.core.gamification import level_title, xp_for_next_level
from lifeos.core.models import EventInstance, RecurringEvent, TimerMode
from lifeos.core.recurrence import DEFAULT_MAX_INSTANCES, describe, generate_rule, is_valid_rule
from lifeos.reporting.formatter import TextFormatter

logger = logging.getLogger(__name__)

# Will be set by start_dashboard()
_app_ref = None  # type: Optional[Any]  # LifeOSApp


def create_flask_app() -> Flask:
    app = Flask(__name__)
    app.config["SEND_FILE_MAX_AGE_DEFAULT"] = 0

    @app.route("/")
    def index():
        return render_template_string(DASHBOARD_HTML)

    # ------------------------------------------------------------------
    # Focus timer
    # ------------------------------------------------------------------

    @app.route("/api/timer")
    def api_timer():
        if not _app_ref or not _app_ref._timer:
            return jsonify({"error": "not ready"}), 500
        return jsonify(_timer_response(_app_ref._timer))

    @app.route("/api/timer/start", methods=["POST"])
    def api_timer_start():
        if not _app_ref or not _app_ref._timer:
            return jsonify({"error": "not ready"}), 500
        started = _app_ref._timer.start()
        return jsonify({"ok": started, **_timer_response(_app_ref._timer)})

    @app.route("/api/timer/pause", methods=["POST"])
    def api_timer_pause():
        if not _app_ref or not _app_ref._timer:
            return jsonify({"error": "not ready"}), 500
        _app_ref._timer.pause()
        return jsonify({"ok": True, **_timer_response(_app_ref._timer)})

    @app.route("/api/timer/reset", methods=["POST"])
    def api_timer_reset():
        if not _app_ref or not _app_ref._timer:
            return jsonify({"error": "not ready"}), 500
        _app_ref._timer.reset()
        return jsonify({"ok": True, **_timer_response(_app_ref._timer)})

    @app.route("/api/timer/duration", methods=["POST"])
    def api_timer_duration():
        if not _app_ref or not _app_ref._timer:
            return jsonify({"error": "not ready"}), 500
        data = request.json or {}
        if "minutes" not in data:
            return jsonify({"error": "minutes required"}), 400
        if not _app_ref._timer.set_duration(data["minutes"]):
            return jsonify({"error": "timer is running"}), 409
        return jsonify({"ok": True, **_timer_response(_app_ref._timer)})

    @app.route("/api/timer/task", methods=["POST"])
    def api_timer_task():
        if not _app_ref or not _app_ref._timer:
            return jsonify({"error": "not ready"}), 500
        data = request.json or {}
        task_id = data.get("task_id")
        _app_ref._timer.set_task_id(str(task_id) if task_id else None)
        return jsonify({"ok": True, **_timer_response(_app_ref._timer)})

    @app.route("/api/timer/mode", methods=["POST"])
    def api_timer_mode():
        if not _app_ref or not _app_ref._timer:
            return jsonify({"error": "not ready"}), 500
        data = request.json or {}
        try:
            mode = TimerMode(data.get("mode"))
        except ValueError:
            return jsonify({"error": f"unknown mode {data.get('mode')!r}"}), 400
        if not _app_ref._timer.set_mode(mode):
            return jsonify({"error": "timer is running"}), 409
        return jsonify({"ok": True, **_timer_response(_app_ref._timer)})

    # ------------------------------------------------------------------
    # Profile and focus history
    # ------------------------------------------------------------------

    @app.route("/api/profile")
    def api_profile():
        if not _app_ref or not _app_ref._store:
            return jsonify({"error": "not ready"}), 500
        profile = _app_ref._store.get_profile()
        return jsonify({
            "xp": profile.xp,
            "level": profile.level,
            "title": level_title(profile.level),
            "next_level_xp": xp_for_next_level(profile.level),
            "focus_minutes": profile.focus_minutes,
            "sessions_completed": profile.sessions_completed,
        })

    @app.route("/api/sessions")
    def api_sessions():
        if not _app_ref or not _app_ref._summary_generator:
            return jsonify({"error": "not ready"}), 500
        date_str = request.args.get("date")
        try:
            target = date.fromisoformat(date_str) if date_str else date.today()
        except ValueError:
            return jsonify({"error": f"invalid date {date_str!r}"}), 400
        summary = _app_ref._summary_generator.daily_summary(target)
        return jsonify({
            "date": str(summary.date),
            "total_minutes": summary.total_minutes,
            "total_str": TextFormatter.format_duration(timedelta(minutes=summary.total_minutes)),
            "xp_earned": summary.xp_earned,
            "minutes_by_task": summary.minutes_by_task,
            "sessions": [
                {
                    "id": s.id,
                    "minutes": s.minutes,
                    "task_id": s.task_id,
                    "started_at": s.started_at.isoformat(),
                    "completed_at": s.completed_at.isoformat(),
                }
                for s in summary.sessions
            ],
        })

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------

    @app.route("/api/calendar")
    def api_calendar():
        if not _app_ref or not _app_ref._store:
            return jsonify({"error": "not ready"}), 500
        calendar_cfg = _app_ref.config.get("calendar", {}) or {}
        try:
            start = _parse_datetime(request.args.get("start"))
            end = _parse_datetime(request.args.get("end"))
        except (ValueError, OverflowError) as exc:
            return jsonify({"error": str(exc)}), 400
        if start is None:
            start = datetime.combine(date.today(), time.min)
        if end is None:
            end = start + timedelta(days=int(calendar_cfg.get("agenda_days", 7)))
        max_instances = int(calendar_cfg.get("max_instances", DEFAULT_MAX_INSTANCES))

        instances = build_agenda(_app_ref._store, start, end, max_instances)
        return jsonify([_instance_response(i) for i in instances])

    @app.route("/api/events", methods=["POST"])
    def api_create_event():
        if not _app_ref or not _app_ref._store:
            return jsonify({"error": "not ready"}), 500
        data = request.json or {}
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            return jsonify({"error": "title required"}), 400
        title = title.strip()
        try:
            start = _parse_datetime(data.get("start"))
            end = _parse_datetime(data.get("end"))
        except (ValueError, OverflowError) as exc:
            return jsonify({"error": str(exc)}), 400
        if start is None:
            return jsonify({"error": "start required"}), 400
        if end is None:
            end = start + timedelta(hours=1)
        if (start.tzinfo is None) != (end.tzinfo is None):
            return jsonify({"error": "start and end must both have a UTC offset, or neither"}), 400
        if end < start:
            return jsonify({"error": "end is before start"}), 400

        rule = data.get("rule")
        if rule is not None and not isinstance(rule, str):
            return jsonify({"error": "rule must be a string"}), 400
        if rule:
            if not is_valid_rule(rule):
                return jsonify({"error": f"invalid recurrence rule {rule!r}"}), 400
        elif data.get("preset"):
            rule = generate_rule(
                data["preset"],
                start.date(),
                data.get("end_type", "NEVER"),
                data.get("end_value"),
            )

        event = RecurringEvent(
            id=data.get("id") or str(uuid.uuid4()),
            title=title,
            start=start,
            end=end,
            recurrence_rule=rule or None,
            all_day=bool(data.get("all_day", False)),
            description=data.get("description", ""),
            location=data.get("location", ""),
        )
        _app_ref._store.save_event(event)
        return jsonify({"ok": True, "id": event.id, "recurrence_rule": event.recurrence_rule}), 201

    @app.route("/api/events/<event_id>", methods=["DELETE"])
    def api_delete_event(event_id):
        if not _app_ref or not _app_ref._store:
            return jsonify({"error": "not ready"}), 500
        if not _app_ref._store.delete_event(event_id):
            return jsonify({"error": "not found"}), 404
        return jsonify({"ok": True})

    @app.route("/api/events/<event_id>/cancel", methods=["POST"])
    def api_cancel_occurrence(event_id):
        if not _app_ref or not _app_ref._store:
            return jsonify({"error": "not ready"}), 500
        event = _app_ref._store.get_event_by_id(event_id)
        if event is None:
            return jsonify({"error": "not found"}), 404
        data = request.json or {}
        try:
            occurrence = _parse_datetime(data.get("occurrence"))
        except (ValueError, OverflowError) as exc:
            return jsonify({"error": str(exc)}), 400
        if occurrence is None:
            return jsonify({"error": "occurrence required"}), 400

        instance = EventInstance(
            id=f"{event.id}-{occurrence.isoformat()}",
            title=event.title,
            start=occurrence,
            end=occurrence + (event.end - event.start),
            is_recurring_instance=bool(event.recurrence_rule),
            parent_event_id=event.id,
            occurrence=occurrence,
            recurrence_rule=event.recurrence_rule,
        )
        try:
            cancel_occurrence(_app_ref._store, instance)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        return jsonify({"ok": True})

    # ------------------------------------------------------------------
    # Recurrence helpers
    # ------------------------------------------------------------------

    @app.route("/api/recurrence/generate", methods=["POST"])
    def api_generate_rule():
        data = request.json or {}
        try:
            start = _parse_datetime(data.get("start"))
        except (ValueError, OverflowError) as exc:
            return jsonify({"error": str(exc)}), 400
        start_date = start.date() if start else date.today()
        rule = generate_rule(
            data.get("preset", "NONE"),
            start_date,
            data.get("end_type", "NEVER"),
            data.get("end_value"),
        )
        return jsonify({
            "rule": rule,
            "description": describe(rule, start_date),
        })

    @app.route("/api/recurrence/describe")
    def api_describe_rule():
        rule = request.args.get("rule")
        try:
            start = _parse_datetime(request.args.get("start"))
        except (ValueError, OverflowError) as exc:
            return jsonify({"error": str(exc)}), 400
        start_date = start.date() if start else date.today()
        return jsonify({"description": describe(rule, start_date)})

    @app.route("/api/recurrence/validate")
    def api_validate_rule():
        return jsonify({"valid": is_valid_rule(request.args.get("rule"))})

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @app.route("/api/config")
    def api_get_config():
        if not _app_ref:
            return jsonify({})
        return jsonify(_app_ref.config)

    @app.route("/api/config", methods=["POST"])
    def api_save_config():
        if not _app_ref:
            return jsonify({"error": "not ready"}), 500
        data = request.json
        if not isinstance(data, dict):
            return jsonify({"error": "invalid"}), 400
        from lifeos.core.config import save_config
        _app_ref.config = data
        save_config(data, _app_ref.config_path)
        _app_ref._apply_config_changes()
        return jsonify({"ok": True})

    return app


def start_dashboard(app_ref, port: int = 5555) -> threading.Thread:
    """Start the Flask dashboard in a daemon thread."""
    global _app_ref
    _app_ref = app_ref
    flask_app = create_flask_app()

    def _run():
        flask_app.run(host="127.0.0.1", port=port, debug=False, use_reloader=False)

    t = threading.Thread(target=_run, daemon=True, name="lifeos-web")
    t.start()
    logger.info("Dashboard started at http://127.0.0.1:%d", port)
    return t


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date or datetime; empty input gives ``None``."""
    if not value:
        return None
    if not isinstance(value, str):
        raise ValueError(f"expected an ISO date string, got {value!r}")
    return date_parser.isoparse(value)


def _timer_response(timer) -> dict:
    state = timer.state
    return {
        "is_active": state.is_active,
        "time_left": state.time_left,
        "duration": state.duration,
        "display": TextFormatter.format_timer(state.time_left),
        "task_id": state.task_id,
        "mode": state.mode.value,
        "pomodoros_completed": state.pomodoros_completed,
    }


def _instance_response(instance: EventInstance) -> dict:
    data = instance.to_dict()
    if instance.recurrence_rule:
        data["recurrence_description"] = describe(instance.recurrence_rule, instance.start)
    return data


DASHBOARD_HTML = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>LifeOS</title>
<style>
  body { font-family: -apple-system, system-ui, sans-serif; background: #f5f3ef; color: #2b2b2b; margin: 0; }
  header { padding: 16px 24px; background: #5a7d9a; color: #fff; font-weight: 600; }
  main { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; padding: 16px 24px; }
  section { background: #fff; border-radius: 8px; padding: 16px; box-shadow: 0 1px 3px rgba(0,0,0,.08); }
  #timer-time { font-size: 56px; font-variant-numeric: tabular-nums; text-align: center; }
  .row { display: flex; gap: 8px; justify-content: center; margin-top: 8px; }
  button { border: 0; border-radius: 4px; padding: 6px 12px; background: #5a7d9a; color: #fff; cursor: pointer; }
  ul { list-style: none; padding: 0; margin: 0; }
  li { padding: 4px 0; border-bottom: 1px solid #eee; }
  .muted { color: #888; font-size: 12px; }
</style>
</head>
<body>
<header>LifeOS</header>
<main>
  <section>
    <h3>Focus</h3>
    <div id="timer-time">25:00</div>
    <div class="row">
      <select id="mode">
        <option value="focus">Focus</option>
        <option value="short_break">Short break</option>
        <option value="long_break">Long break</option>
      </select>
      <button onclick="toggleTimer()" id="toggle">Start</button>
      <button onclick="post('/api/timer/reset')">Reset</button>
    </div>
    <p class="muted" id="timer-meta"></p>
  </section>
  <section>
    <h3>Profile</h3>
    <div id="profile"></div>
    <h4>Today</h4>
    <div id="today"></div>
  </section>
  <section style="grid-column: span 2">
    <h3>Agenda</h3>
    <ul id="agenda"></ul>
  </section>
</main>
<script>
let timer = null;

async function fetchJSON(url, opts) { return (await fetch(url, opts)).json(); }
function esc(s) { const d = document.createElement('div'); d.textContent = s; return d.innerHTML; }

async function post(url, body) {
  await fetchJSON(url, {method: 'POST', headers: {'Content-Type': 'application/json'},
                        body: JSON.stringify(body || {})});
  refreshTimer();
}

async function toggleTimer() {
  await post(timer && timer.is_active ? '/api/timer/pause' : '/api/timer/start');
}

document.getElementById('mode').onchange = e => post('/api/timer/mode', {mode: e.target.value});

async function refreshTimer() {
  timer = await fetchJSON('/api/timer');
  document.getElementById('timer-time').textContent = timer.display;
  document.getElementById('toggle').textContent = timer.is_active ? 'Pause' : 'Start';
  document.getElementById('mode').value = timer.mode;
  document.getElementById('timer-meta').textContent =
    `Pomodoros today: ${timer.pomodoros_completed}` + (timer.task_id ? ` · Task: ${timer.task_id}` : '');
}

async function refreshProfile() {
  const p = await fetchJSON('/api/profile');
  document.getElementById('profile').innerHTML =
    `<b>Level ${p.level}</b> ${esc(p.title)}<br><span class="muted">${p.xp} / ${p.next_level_xp} XP</span>`;
  const t = await fetchJSON('/api/sessions');
  document.getElementById('today').innerHTML =
    `${esc(t.total_str)} focused, ${t.xp_earned} XP`;
}

async function refreshAgenda() {
  const items = await fetchJSON('/api/calendar');
  const el = document.getElementById('agenda');
  if (!items.length) { el.innerHTML = '<li class="muted">No events scheduled.</li>'; return; }
  el.innerHTML = items.map(i => {
    const when = i.all_day ? 'All day' : new Date(i.start).toLocaleString();
    const rec = i.recurrence_description ? ` <span class="muted">(${esc(i.recurrence_description)})</span>` : '';
    return `<li>${esc(when)} · ${esc(i.title)}${rec}</li>`;
  }).join('');
}

refreshTimer(); refreshProfile(); refreshAgenda();
setInterval(refreshTimer, 1000);
setInterval(refreshProfile, 30000);
</script>
</body>
</html>
"""

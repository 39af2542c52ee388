"""Entry point for the medication tracker: reminder loop, sensor relay and web API."""

from config import NotificationConfig, RelayConfig, ReminderConfig, get_logger
from core.scheduler import Scheduler
from core.session import TrackerSession
from modules.memory_manager import MemoryManager
from modules.notifier import Notifier
from website.relay import RelayHub, SerialBridge
from website.server import create_app

logger = get_logger("main")


def build(reminder_config: ReminderConfig = None, relay_config: RelayConfig = None):
    """Wire store, scheduler, session, relay hub and Flask app together."""
    reminder_config = reminder_config or ReminderConfig()
    relay_config = relay_config or RelayConfig()

    store = MemoryManager(reminder_config=reminder_config)
    scheduler = Scheduler()
    session = TrackerSession(
        store,
        notifier=Notifier(NotificationConfig()),
        scheduler=scheduler,
        config=reminder_config,
    )
    hub = RelayHub(relay_config)
    hub.subscribe(session.handle_relay_message)
    app = create_app(session, hub, reminder_config)
    return app, session, scheduler, hub


def main():
    relay_config = RelayConfig()
    app, session, scheduler, hub = build(relay_config=relay_config)
    bridge = SerialBridge(hub, relay_config)

    session.start()
    scheduler.start()
    bridge.start()
    logger.info(f"Server running on http://localhost:{relay_config.port}")
    logger.info(f"WebSocket relay on ws://localhost:{relay_config.port}/ws")
    try:
        app.run(host=relay_config.host, port=relay_config.port, debug=False, threaded=True)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
    finally:
        bridge.stop()
        session.stop()
        scheduler.stop()


if __name__ == "__main__":
    main()

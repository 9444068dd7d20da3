import os
import random
import time

from eventdispatch.core import log
from eventdispatch.core.contracts import Event, EventHandler, FunctionHandler
from eventdispatch.core.dispatcher import EventDispatcher
from eventdispatch.core.metrics import force_emit, start_exporter, stop_exporter


class PrintHandler(EventHandler):
    def __init__(self, tag: str):
        self.tag = tag
        self.l = log.get(f"demo.{tag}")

    def handle(self, event):
        self.l.info("got %s payload=%s at %.3f", event.name, event.payload, event.created_at)


def main():
    log.setup()
    start_exporter(interval_sec=float(os.getenv("METRICS_INTERVAL", "5")),
                   json_mode=(os.getenv("LOG_JSON", "0") == "1"))

    d = EventDispatcher()
    audit = PrintHandler("audit")
    d.register("order.created", audit)
    d.register("order.created", PrintHandler("mailer"))
    d.register("order.cancelled", audit)
    d.register("order.cancelled", FunctionHandler(lambda ev: time.sleep(random.uniform(0.001, 0.01))))

    for i in range(10):
        name = random.choice(["order.created", "order.cancelled", "order.unknown"])
        d.dispatch(Event(name, {"order": i}))
        time.sleep(0.1)

    d.remove("order.created", audit)
    d.dispatch(Event("order.created", {"order": "after-remove"}))

    force_emit()
    stop_exporter()


if __name__ == "__main__":
    main()

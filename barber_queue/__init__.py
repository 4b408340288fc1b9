"""Walk-in service queue (barbershop) coordinated over MQTT pub/sub.

One queue manager process owns the queue for a shop. Three kinds of surface
talk to it through a broker like Mosquitto:
- the self-service kiosk (check in)
- the staff console (call, skip, recall, mark served / no-show, roster)
- the display board (NOW UP + held / on-deck / list bands)

The queue rules live in two pure modules: `transitions` (what a command does
to the queue) and `segments` (how the waiting list is split for display).

See README for how to run.
"""

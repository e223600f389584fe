"""waggen: web application state graph generator.

Discovers the distinct UI states of a browser-rendered application and the
actions connecting them, either autonomously (breadth-first) or step by step
under the control of a live client.

Key sub-modules:

knowledge.py         – Data model (states, actions, transitions, sessions) and its JSON shape.
action_discovery.py  – Visible interactive elements and the candidate actions they offer.
state_matcher.py     – Page fingerprinting, state deduplication, explored-action bookkeeping.
graph.py             – State graph with deduplicated transitions and bounded path search.
browser.py           – Playwright driver behind the narrow ``Driver`` protocol.
explorer.py          – Autonomous breadth-first exploration engine.
interactive.py       – Interactive controller: execute / skip / jump, single mutation lock.
session.py           – Versioned session files and their migration.
live.py, server.py   – Live-update protocol and its FastAPI websocket transport.
serializer.py        – Graph JSON, summaries, Mermaid and GraphML output.
"""

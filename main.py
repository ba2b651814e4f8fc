from __future__ import annotations
import argparse
import os
import sys
import time
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv
load_dotenv()

# ---------- Config defaults ----------
DEFAULT_BASE_URL = os.getenv("NEGOTIATION_BASE_URL", "http://127.0.0.1:8000")
API_PREFIX = "/v1/negotiation"

# ---------- Simple HTTP client helpers ----------
def _post(base_url: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
    url = f"{base_url.rstrip('/')}{API_PREFIX}{path}"
    r = requests.post(url, json=payload or {}, timeout=60)
    if r.status_code >= 400:
        print(f"\n[CLIENT] HTTP {r.status_code} from {url}")
        try:
            print("[CLIENT] Body:", r.json())
        except ValueError:
            print("[CLIENT] Body:", r.text[:1000])
        r.raise_for_status()
    return r.json()

def _get(base_url: str, path: str) -> Any:
    url = f"{base_url.rstrip('/')}{API_PREFIX}{path}"
    r = requests.get(url, timeout=60)
    r.raise_for_status()
    return r.json()

# ---------- API wrappers ----------
def start_session(base_url: str) -> str:
    return _post(base_url, "/sessions")["session_id"]

def advance(base_url: str, session_id: str, phase: str) -> str:
    return _post(base_url, f"/sessions/{session_id}/phase", {"phase": phase})["phase"]

def select(base_url: str, session_id: str, category_id: int, option_id: int) -> Dict[str, Any]:
    return _post(base_url, f"/sessions/{session_id}/selections",
                 {"category_id": category_id, "option_id": option_id})

def say(base_url: str, session_id: str, text: str) -> List[Dict[str, Any]]:
    return _post(base_url, f"/sessions/{session_id}/negotiation/messages", {"text": text})

def vote(base_url: str, session_id: str) -> List[Dict[str, Any]]:
    return _post(base_url, f"/sessions/{session_id}/negotiation/vote")

# ---------- Pretty printers ----------
def print_messages(messages: List[Dict[str, Any]]) -> None:
    for m in messages:
        marker = "🗳 " if m.get("is_consensus") else ""
        print(f"\n[{m['sender']}] {marker}{m['text']}")

def print_report(report: Dict[str, Any]) -> None:
    print("\n===== REPORT =====")
    print(f"Your budget spent:   {report['user_budget_spent']} / {report['total_budget']}")
    print(f"Group budget spent:  {report['group_budget_spent']} / {report['total_budget']}")
    print(f"Agreement with group: {report['agreement_count']} / {len(report['group_decisions'])}")
    print("\n--- Group decisions ---")
    for row in report["group_decisions"]:
        print(f"- {row['category_name']}: {row['option_title']} (cost {row['cost']})")
    if report.get("single_option_index"):
        print(f"\nNote: every pick used option {report['single_option_index']}.")
    print("=" * 18)

# ---------- Auto-demo play loop ----------
# One affordable pick per category (total 13 units), mixing option indexes.
DEMO_PICKS = [(1, 3), (2, 2), (3, 2), (4, 1), (5, 2), (6, 1), (7, 2)]

DEMO_LINES = [
    "Refugee children should not wait years for a place in school.",
    "I'm worried about cost, but segregation has costs too.",
]

def auto_demo_play(base_url: str, pause: float = 0.2) -> None:
    """Runs a scripted session end to end for quick verification."""
    print("\n🤖 Running auto-demo...")
    sid = start_session(base_url)
    print(f"✅ Session started: {sid}")

    advance(base_url, sid, "collectingUserInfo")
    _post(base_url, f"/sessions/{sid}/user-info",
          {"age": "34", "occupation": "Teacher", "education": "Master's", "location": "Republic of Bean"})
    advance(base_url, sid, "individualSelection")
    for cat_id, opt_id in DEMO_PICKS:
        sel = select(base_url, sid, cat_id, opt_id)
    print(f"✅ Selections made, remaining budget {sel['remaining_budget']}")

    advance(base_url, sid, "groupNegotiation")
    neg = _post(base_url, f"/sessions/{sid}/negotiation/start")
    print_messages(neg["messages"])

    while neg["step"] != "summary":
        for line in DEMO_LINES:
            if neg["step"] != "discussing":
                break
            print_messages(say(base_url, sid, f"{line} ({neg['category_name']})"))
            neg = _get(base_url, f"/sessions/{sid}/negotiation")
            time.sleep(pause)
        print_messages(vote(base_url, sid))
        neg = _get(base_url, f"/sessions/{sid}/negotiation")

    advance(base_url, sid, "reflection")
    _post(base_url, f"/sessions/{sid}/reflections",
          {"question_id": "compromises", "answer": "I gave ground on certification to keep language support."})
    advance(base_url, sid, "report")

    print_report(_get(base_url, f"/sessions/{sid}/report"))
    print("\n--- Professor Beanington ---")
    print(_post(base_url, f"/sessions/{sid}/report/reflection")["text"])

# ---------- Interactive play loop ----------
def interactive_play(base_url: str) -> None:
    catalog = _get(base_url, "/catalog")
    sid = start_session(base_url)
    print(f"\n✅ Session started: {sid}")

    advance(base_url, sid, "collectingUserInfo")
    info = {f: input(f"{f.replace('_', ' ').title()} (optional): ").strip() or None
            for f in ("age", "nationality", "occupation", "education", "displacement_experience", "location")}
    _post(base_url, f"/sessions/{sid}/user-info", {k: v for k, v in info.items() if v})

    advance(base_url, sid, "individualSelection")
    for cat in catalog["categories"]:
        print(f"\n--- {cat['name']} ---")
        for o in cat["options"]:
            print(f"  {o['id']}) {o['title']} (cost {o['cost']}): {o['description']}")
        while True:
            choice = input("Option (1-3): ").strip()
            try:
                sel = select(base_url, sid, cat["id"], int(choice))
                print(f"Remaining budget: {sel['remaining_budget']}")
                break
            except (ValueError, requests.HTTPError):
                print("That option is not available; try another.")

    advance(base_url, sid, "groupNegotiation")
    neg = _post(base_url, f"/sessions/{sid}/negotiation/start")
    print_messages(neg["messages"])
    while neg["step"] != "summary":
        text = input("\nYou (or 'vote'): ").strip()
        if text.lower() == "vote":
            print_messages(vote(base_url, sid))
        elif text:
            print_messages(say(base_url, sid, text))
        neg = _get(base_url, f"/sessions/{sid}/negotiation")
        if neg["step"] == "votingOpen":
            print_messages(vote(base_url, sid))
            neg = _get(base_url, f"/sessions/{sid}/negotiation")

    advance(base_url, sid, "reflection")
    for q in catalog["reflection_questions"]:
        answer = input(f"\n{q['question']}\n> ").strip()
        if answer:
            _post(base_url, f"/sessions/{sid}/reflections", {"question_id": q["id"], "answer": answer})
    advance(base_url, sid, "report")
    print_report(_get(base_url, f"/sessions/{sid}/report"))

# ---------- Commands ----------
def run_server(port: int, host: str = "127.0.0.1", reload: bool = True) -> None:
    import uvicorn
    uvicorn.run("api:app", host=host, port=port, reload=reload)

def _server_reachable(base_url: str) -> bool:
    try:
        _get(base_url, "/catalog")
    except requests.RequestException:
        return False
    return True

def health_check(base_url: str) -> None:
    print(f"🔎 Checking server at {base_url} ...")
    try:
        catalog = _get(base_url, "/catalog")
        print(f"✅ Catalog: {len(catalog['categories'])} categories, "
              f"{len(catalog['reflection_questions'])} reflection questions")
        sid = start_session(base_url)
        print(f"✅ Session API ok (session_id={sid})")
    except requests.RequestException as e:
        print(f"❌ Health check failed: {e}")
        sys.exit(1)

# ---------- CLI ----------
def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Policy negotiation simulator: server + client in one file")

    sub = p.add_subparsers(dest="cmd", required=True)

    ps = sub.add_parser("serve", help="Start the FastAPI server (uvicorn)")
    ps.add_argument("--port", type=int, default=8000, help="Port to bind")
    ps.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind")
    ps.add_argument("--no-reload", action="store_true", help="Disable auto-reload")

    pp = sub.add_parser("play", help="Play a full session (interactive or auto)")
    pp.add_argument("--base-url", type=str, default=DEFAULT_BASE_URL, help="API base URL")
    pp.add_argument("--auto-demo", action="store_true", help="Run a scripted demo instead of prompting")

    ph = sub.add_parser("health", help="Check server availability")
    ph.add_argument("--base-url", type=str, default=DEFAULT_BASE_URL, help="API base URL")

    return p.parse_args(argv)

def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)

    if args.cmd == "serve":
        run_server(port=args.port, host=args.host, reload=(not args.no_reload))
        return

    if args.cmd == "play":
        if not _server_reachable(args.base_url):
            print("⚠️  Could not reach the server. Is it running?\n"
                  "    Start it in another terminal:\n"
                  "    python main.py serve")
            sys.exit(1)

        if args.auto_demo:
            auto_demo_play(args.base_url)
        else:
            interactive_play(args.base_url)
        return

    health_check(args.base_url)

if __name__ == "__main__":
    main()

#!/usr/bin/env python3
import argparse
import json
import os
from typing import List, Tuple

import firebase_admin
from firebase_admin import credentials, firestore

from coaching_portal.models import utc_now_iso
from coaching_portal.services.admin_api_service import clean_user_fields


def init_firestore():
    if os.path.exists("firebase-credentials.json"):
        cred = credentials.Certificate("firebase-credentials.json")
    else:
        raw = (os.getenv("FIREBASE_CREDENTIALS", "") or "").strip()
        if not raw:
            raise RuntimeError("Missing firebase-credentials.json and FIREBASE_CREDENTIALS env var.")
        cred = credentials.Certificate(json.loads(raw))
    if not firebase_admin._apps:
        firebase_admin.initialize_app(cred)
    return firestore.client()


def load_user_entries(path) -> List[dict]:
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict):
        data = data.get("users", [])
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a list of users or an object with a 'users' list")
    return data


def build_user_records(entries) -> Tuple[List[dict], List[str]]:
    records = []
    problems = []
    for index, entry in enumerate(entries):
        user_id = str((entry or {}).get("userId") or "").strip()
        password = (entry or {}).get("password")
        if not user_id or not isinstance(password, str) or not password:
            problems.append(f"entry {index}: userId and password are required")
            continue
        fields, error = clean_user_fields(entry)
        if error:
            problems.append(f"{user_id}: {error}")
            continue
        now = utc_now_iso()
        record = {"userId": user_id, "password": password, "createdAt": now, "updatedAt": now}
        record.update(fields)
        records.append(record)
    return records, problems


def seed_users(db, records, apply_changes: bool, overwrite: bool) -> Tuple[int, int]:
    written = 0
    skipped = 0
    for record in records:
        ref = db.collection("users").document(record["userId"])
        if not overwrite and ref.get().exists:
            skipped += 1
            continue
        written += 1
        if apply_changes:
            ref.set(record)
    return written, skipped


def main():
    parser = argparse.ArgumentParser(description="Import portal users from a users.json file into Firestore.")
    parser.add_argument("path", help="JSON file with a list of user objects (userId, password, name, role/userType, ...)")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply changes. Without this flag, the script runs in dry-run mode.",
    )
    parser.add_argument("--overwrite", action="store_true", help="Replace users that already exist.")
    args = parser.parse_args()

    records, problems = build_user_records(load_user_entries(args.path))
    for problem in problems:
        print(f"[SKIP] {problem}")

    db = init_firestore()
    written, skipped = seed_users(db, records, apply_changes=args.apply, overwrite=args.overwrite)
    mode = "APPLY" if args.apply else "DRY-RUN"
    print(f"[{mode}] valid={len(records)} invalid={len(problems)} to_write={written} existing_skipped={skipped}")
    if not args.apply:
        print("No changes were written. Re-run with --apply to persist.")


if __name__ == "__main__":
    main()

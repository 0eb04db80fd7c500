"""
Question Loader Script - attaches generated questions to a pending exam.

Reads a JSON file produced by the question generator
({"title", "mcq", "true_false", "short_answer", "feedback"}) and sends it to
PUT /exam/{exam_id}/questions, which marks the exam ready.

Usage:
    python load_questions.py <exam_id> questions.json
    python load_questions.py <exam_id> questions.json http://backend:8000
"""

import json
import sys
import os

import httpx


def put_json(url, data):
    with httpx.Client(timeout=30.0) as client:
        resp = client.put(url, json=data)
        if resp.status_code >= 400:
            print(f"HTTP Error {resp.status_code}: {resp.text}")
            sys.exit(1)
        return resp.json()


def main():
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)

    exam_id = sys.argv[1]
    data_file = sys.argv[2]
    api_url = sys.argv[3] if len(sys.argv) > 3 else os.getenv("API_URL", "http://localhost:8000")
    target_url = f"{api_url}/exam/{exam_id}/questions"

    if not os.path.exists(data_file):
        print(f"Error: Could not find {data_file}")
        sys.exit(1)

    print(f"Loading questions from: {data_file}")
    with open(data_file, 'r') as f:
        generated = json.load(f)

    payload = {
        "title": generated.get("title"),
        "mcq": generated.get("mcq", []),
        "true_false": generated.get("true_false", []),
        "short_answer": generated.get("short_answer", []),
        "feedback": generated.get("feedback"),
    }

    print(f"Sending {len(payload['mcq'])} MCQ, {len(payload['true_false'])} true/false, "
          f"{len(payload['short_answer'])} short-answer questions to: {target_url}")
    result = put_json(target_url, payload)

    print("=" * 60)
    print("EXAM READY")
    print("=" * 60)
    print(f"  Exam ID:   {result.get('id', '?')}")
    print(f"  Title:     {result.get('title') or '-'}")
    print(f"  Status:    {result.get('status', '?')}")
    print(f"  Declared:  {result.get('mcqCount', '?')} / {result.get('trueFalseCount', '?')} / "
          f"{result.get('shortAnswerCount', '?')} (mcq / true_false / short_answer)")
    print("=" * 60)


if __name__ == "__main__":
    main()

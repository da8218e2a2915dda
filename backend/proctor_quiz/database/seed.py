"""Default question catalog and database bootstrap"""
import asyncio
import json
import logging
import sys
from pathlib import Path

from proctor_quiz.database.connection import (
    close_mongo_connection,
    connect_to_mongo,
    load_environment,
)

logger = logging.getLogger(__name__)


DEFAULT_QUESTIONS = [
    {
        "id": "1",
        "question": "In networking, IP is used for uniquely identifying devices and routing packets across networks?",
        "options": [
            "Internet Protocol",
            "Internal Processing",
            "Interface Program",
            "Information Packet"
        ],
        "correctAnswer": 0,
        "category": "Technical",
    },
    {
        "id": "2",
        "question": 'What will the following code print in most C-like languages? int a=5/2; printf("%d",a);',
        "options": ["2", "2.5", "3", "Error"],
        "correctAnswer": 0,
        "category": "Technical",
    },
    {
        "id": "3",
        "question": "In an ordered array, a search algorithm repeatedly divides the search interval in half until the target element is found or the interval becomes empty. What is the time complexity of this algorithm?",
        "options": ["O(1)", "O(n)", "O(log n)", "O(n log n)"],
        "correctAnswer": 2,
        "category": "Technical",
    },
    {
        "id": "4",
        "question": "What is the output of: print(2 ** 3 ** 2)",
        "options": ["64", "512", "256", "8"],
        "correctAnswer": 1,
        "category": "Technical",
    },
    {
        "id": "5",
        "question": "Which of the following represents a semantic HTML element?",
        "options": ["<div>", "<section>", "<span>", "<b>"],
        "correctAnswer": 1,
        "category": "Technical",
    },
    {
        "id": "6",
        "question": "Which CSS property is used to create rounded corners?",
        "options": ["border-width", "border style", "border-radius", "border-round"],
        "correctAnswer": 2,
        "category": "Technical",
    },
    {
        "id": "7",
        "question": "In the context of web communication, when a client requests a resource that does not exist on the server, the server responds with which HTTP status code?",
        "options": ["200", "301", "404", "500"],
        "correctAnswer": 2,
        "category": "Technical",
    },
    {
        "id": "8",
        "question": "In JavaScript, == and === differ because:",
        "options": [
            "== checks value only, === checks value + type",
            "== checks type only, === checks value only",
            "Both are identical",
            "=== is only used in TypeScript"
        ],
        "correctAnswer": 0,
        "category": "Technical",
    },
    {
        "id": "9",
        "question": "Which of the following is a non-volatile memory?",
        "options": ["RAM", "ROM", "Cache", "Register"],
        "correctAnswer": 1,
        "category": "Technical",
    },
    {
        "id": "10",
        "question": "for(int i=0; i<5; i++) {if(i==3) break;  System.out.print(i);",
        "options": ["012", "0123", "123", "0"],
        "correctAnswer": 0,
        "category": "Technical",
    },
    {
        "id": "11",
        "question": "In rectangle ABCD, the diagonals AC and BD intersect at point E. If the area of the rectangle is 120 square units, what is the area of triangle EBC (the triangle with vertices E,B,C)?",
        "options": ["30", "40", "60", "20"],
        "correctAnswer": 0,
        "category": "General",
    },
    {
        "id": "12",
        "question": "In binary, what is the result of 1011 + 110?",
        "options": ["10001", "11001", "10000", "11101"],
        "correctAnswer": 0,
        "category": "Technical",
    },
    {
        "id": "13",
        "question": "If in a certain code “CAT” is written as “DBU”, then “DOG” will be coded as:",
        "options": ["EPH", "DPH", "EOH", "ENH"],
        "correctAnswer": 0,
        "category": "General",
    },
    {
        "id": "14",
        "question": "Which is greater: log₂(16) or log₃(27)?",
        "options": ["log₂(16)", "log₃(27)", "Both equal", "Cannot be compared"],
        "correctAnswer": 2,
        "category": "General",
    },
    {
        "id": "15",
        "question": "A person faces North, turns 90° clockwise, then 180° clockwise, and again 90° clockwise. Which direction is he facing now?",
        "options": ["North", "East", "South", "West"],
        "correctAnswer": 0,
        "category": "General",
    },
    {
        "id": "16",
        "question": "If 15 men can build a wall in 12 days, how many days will 10 men take?",
        "options": ["12", "15", "18", "20"],
        "correctAnswer": 2,
        "category": "General",
    },
    {
        "id": "17",
        "question": "The mean of five numbers is 20. If one number is excluded, the mean becomes 18. Find the excluded number.",
        "options": ["30", "32", "28", "26"],
        "correctAnswer": 0,
        "category": "General",
    },
    {
        "id": "18",
        "question": "If in a certain code, TABLE is written as YFQJK, how is CHAIR written in that code?",
        "options": ["HMQWX", "HMPWX", "HMPWY", "GMPWY"],
        "correctAnswer": 1,
        "category": "General",
    },
    {
        "id": "19",
        "question": "What is the sum of the squares of the roots of the equation x2−6x+8=0",
        "options": ["20", "34", "28", "16"],
        "correctAnswer": 2,
        "category": "General",
    },
    {
        "id": "20",
        "question": "Five people (A, B, C, D, E) are sitting in a row. A is to the left of B and right of C. D is to the right of E and left of A. Who is sitting in the middle?",
        "options": ["A", "B", "C", "D"],
        "correctAnswer": 3,
        "category": "General",
    },
]


def write_catalog(output_path: Path):
    """Write the default catalog as JSON so it can be edited and pointed to
    with QUESTION_CATALOG_PATH."""
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(DEFAULT_QUESTIONS, f, indent=2, ensure_ascii=False)
    logger.info(f"📝 Wrote {len(DEFAULT_QUESTIONS)} questions to {output_path}")


async def seed_database():
    """Create the indexes the result and status collections rely on"""
    from proctor_quiz.models.exam_result_model import ExamResultModel

    await connect_to_mongo()
    try:
        await ExamResultModel().ensure_indexes()
        logger.info("✅ Database indexes created")
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    load_environment()
    if len(sys.argv) > 1:
        write_catalog(Path(sys.argv[1]))
    else:
        asyncio.run(seed_database())

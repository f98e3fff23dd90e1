"""
Prompt templates for every model-backed role.

All templates are plain `str.format` strings; literal braces in JSON
examples are doubled. Every role answers with a single JSON object so
the response can go through json_utils.safe_parse_llm_json.
"""

# ============================================================
# SQL GENERATION
# ============================================================

SQL_GENERATION_PROMPT = """You are a SQL query generator for SQLite. Given a natural language question, generate ONE SQL query that answers it.

Rules:
1. Use the EXACT table names and column names from the provided schema. Do not change casing. If the schema quotes an identifier (e.g. "Table Name"), you MUST quote it the same way.
2. For calculated values (MAX, COUNT, AVG, etc.) YOU MUST provide a readable alias, e.g. SELECT MAX(price) AS highest_price.
3. If numbers are stored as text (e.g. '1,200.50'), use REPLACE and CAST to convert them before aggregating: CAST(REPLACE(col, ',', '') AS REAL).

REQUIRED OUTPUT COLUMNS:
The user has explicitly selected these columns to be in the result:
{restricted_columns}

Instructions:
1. You MUST include every REQUIRED OUTPUT COLUMN in the SELECT list.
2. You MAY use any other schema column for filtering (WHERE), sorting (ORDER BY) or joining.
3. Do not add extra SELECT columns unless they are needed to answer the question.
4. If the question needs a column that does not exist in the schema, do NOT guess. Return the error object instead.

Schema:
{schema}

Question: {question}

Feedback from previous attempt (if any): {feedback}

Respond with ONLY one JSON object, either
{{"sql": "<the SQL query>"}}
or, when required columns are missing from the schema,
{{"error": "<short explanation>", "missingColumns": ["<column>", "..."]}}
"""


# ============================================================
# SQL VALIDATION
# ============================================================

SQL_VALIDATION_PROMPT = """You are a SQL validator. Given a SQL query and a SQLite database schema, decide whether the query is valid and will answer correctly.

Schema:
{schema}

Query:
{query}

Check for:
1. Syntax errors.
2. SQLite date handling:
   - Dates are stored as TEXT in whatever format the file used (e.g. "21-Aug-2023").
   - EXTRACT, DATE_PART and MONTH() do not exist in SQLite and are INVALID.
   - Filter dates with string matching, e.g. LOWER(Date) LIKE '%21-aug%'.
3. String matching: text filters should use LOWER(column) LIKE '%value%' unless the exact casing is certain.
4. Casting: a column that looks numeric but is TEXT (e.g. "1,200.00") must be converted with CAST(REPLACE(col, ',', '') AS REAL) before arithmetic.
5. Every table and column exists in the schema.
6. Joins have proper join conditions.
7. Logical correctness with respect to the schema.

Respond with ONLY this JSON object:
{{"valid": true or false, "reasoning": "<explanation; when invalid, say exactly what to fix>"}}
"""


# ============================================================
# RELEVANCE
# ============================================================

RELEVANCE_CHECK_PROMPT = """You are a database expert. Decide whether a natural language question can be answered using ONLY the provided database schema.

Schema:
{schema}

Question:
{question}

Consider:
1. Does the question refer to tables or concepts present in the schema?
2. Can a SQL query over the schema answer it?
3. If the question mentions specific values (names, categories, types like "Bill" or "Salary") that are not schema identifiers, ASSUME they are values inside a column and answer relevant: true.

If the question is completely unrelated to the schema (e.g. asking about the weather when the schema is about users), answer relevant: false.
If you are unsure, ALWAYS answer relevant: true.

Respond with ONLY this JSON object:
{{"relevant": true or false, "reasoning": "<short explanation>"}}
"""


# ============================================================
# INGESTION
# ============================================================

TABLE_NAME_PROMPT = """Given the filename "{filename}" and headers "{headers}...", generate a concise, snake_case table name (max {max_length} chars). Do not use a 'table_' prefix unless necessary.

Respond with ONLY this JSON object:
{{"table_name": "<name>"}}
"""

CLEANUP_PROMPT = """I have a SQLite table named "{table_name}" with columns: {columns}.
Here are {sample_count} sample rows:
{sample_rows}

Generate SQL to CLEAN this data. Focus on:
1. Trimming whitespace from text columns.
2. Converting empty strings '' to NULL where appropriate.
3. Standardizing dates: values like '01/01/2023' become 'YYYY-MM-DD'.
4. Fixing obvious typos in categorical columns if evident.

Use only UPDATE statements against "{table_name}". Respond with ONLY this JSON object:
{{"statements": ["UPDATE ...", "UPDATE ..."]}}
"""


# ============================================================
# QUERY LOG
# ============================================================

TITLE_PROMPT = """Summarize the following question into a short, clean, human-readable title (3-6 words). Do not use quotes.

Question: {question}

Respond with ONLY this JSON object:
{{"title": "<title>"}}
"""

"""Unit tests for SQL statement generation."""
import pytest
from sqldb.exceptions import ValidationError
from sqldb.query import Condition, JoinClause, JoinType, Op, QueryOptions
from sqldb.query import build_create_index, build_create_table, build_delete
from sqldb.query import build_insert, build_select, build_update
from sqldb.schema import ColumnDef, ForeignKey
from sqldb.types import SQLType, Value, ValueType


def payloads(params):
    return [p.payload for p in params]


class TestSelect:

    def test_select_all(self):
        assert build_select('users') == ('SELECT * FROM "users"', [])

    def test_where_conditions_are_bound(self):
        sql, params = build_select('users', [
            Condition('score', Op.GT, 90.0),
            Condition('name', Op.EQ, 'Bob'),
            ])
        assert sql == 'SELECT * FROM "users" WHERE "score" > ? AND "name" = ?'
        assert params == [Value(ValueType.FLOAT64, 90.0), Value(ValueType.TEXT, 'Bob')]

    @pytest.mark.parametrize(('op', 'text'), [
        (Op.EQ, '='), (Op.NEQ, '!='), (Op.GT, '>'), (Op.LT, '<'), (Op.LIKE, 'LIKE'),
    ])
    def test_operators(self, op, text):
        sql, _ = build_select('t', [Condition('c', op, 1)])
        assert sql == f'SELECT * FROM "t" WHERE "c" {text} ?'

    def test_value_is_never_inlined(self):
        evil = "x'; DROP TABLE users; --"
        sql, params = build_select('users', [Condition('name', Op.EQ, evil)])
        assert evil not in sql
        assert 'DROP' not in sql
        assert payloads(params) == [evil]

    def test_identifier_with_quote_is_doubled(self):
        sql, _ = build_select('users', [Condition('a"b', Op.EQ, 1)])
        assert sql == 'SELECT * FROM "users" WHERE "a""b" = ?'

    def test_where_then_having_parameter_order(self):
        options = QueryOptions(
            columns=['name', 'COUNT(id)'],
            group_by=['name'],
            having=[Condition('COUNT(id)', Op.GT, 3)],
            )
        _, params = build_select('users', [
            Condition('score', Op.GT, 1),
            Condition('name', Op.NEQ, 'x'),
            ], options)
        assert payloads(params) == [1, 'x', 3]

    def test_full_clause_order(self):
        options = QueryOptions(
            columns=['users.username', 'COUNT(posts.id)'],
            joins=[JoinClause(JoinType.INNER, 'posts', 'users.id = posts.user_id')],
            group_by=['users.username'],
            having=[Condition('COUNT(posts.id)', Op.GT, 1)],
            order_by='users.username',
            order_desc=True,
            limit=10,
            offset=5,
            )
        sql, params = build_select('users', [Condition('users.id', Op.GT, 0)], options)
        assert sql == (
            'SELECT "users"."username", COUNT(posts.id) FROM "users" '
            'INNER JOIN "posts" ON users.id = posts.user_id '
            'WHERE "users"."id" > ? '
            'GROUP BY "users"."username" '
            'HAVING COUNT(posts.id) > ? '
            'ORDER BY "users"."username" DESC '
            'LIMIT 10 OFFSET 5')
        assert payloads(params) == [0, 1]

    def test_order_ascending(self):
        sql, _ = build_select('users', options=QueryOptions(order_by='score'))
        assert sql == 'SELECT * FROM "users" ORDER BY "score" ASC'

    def test_negative_limit_and_offset_are_omitted(self):
        sql, _ = build_select('users', options=QueryOptions(limit=-1, offset=-1))
        assert sql == 'SELECT * FROM "users"'

    def test_zero_limit_is_emitted(self):
        sql, _ = build_select('users', options=QueryOptions(limit=0))
        assert sql == 'SELECT * FROM "users" LIMIT 0'

    def test_offset_without_limit(self):
        sql, _ = build_select('users', options=QueryOptions(offset=3))
        assert sql == 'SELECT * FROM "users" LIMIT -1 OFFSET 3'

    def test_non_integer_limit_rejected(self):
        with pytest.raises(ValidationError):
            build_select('users', options=QueryOptions(limit='10; DROP TABLE users'))

    @pytest.mark.parametrize(('join', 'expected'), [
        (JoinClause(JoinType.LEFT, 'b', 'a.id = b.a_id'), 'LEFT JOIN "b" ON a.id = b.a_id'),
        (JoinClause(JoinType.RIGHT, 'b', 'a.id = b.a_id'), 'RIGHT JOIN "b" ON a.id = b.a_id'),
        (JoinClause(JoinType.CROSS, 'b'), 'CROSS JOIN "b"'),
    ])
    def test_join_kinds(self, join, expected):
        sql, _ = build_select('a', options=QueryOptions(joins=[join]))
        assert sql == f'SELECT * FROM "a" {expected}'

    def test_join_table_is_quoted(self):
        join = JoinClause(JoinType.INNER, 'we"ird', 'a.id = 1')
        sql, _ = build_select('a', options=QueryOptions(joins=[join]))
        assert 'INNER JOIN "we""ird" ON a.id = 1' in sql


class TestInsertUpdateDelete:

    def test_insert(self):
        sql, params = build_insert('users', {'name': 'Alice', 'score': 95.5})
        assert sql == 'INSERT INTO "users" ("name", "score") VALUES (?, ?)'
        assert payloads(params) == ['Alice', 95.5]

    def test_insert_default_values(self):
        assert build_insert('users', {}) == ('INSERT INTO "users" DEFAULT VALUES', [])

    def test_update_binds_set_before_where(self):
        sql, params = build_update('users', {'score': 99.9},
                                   [Condition('name', Op.EQ, 'Bob')])
        assert sql == 'UPDATE "users" SET "score" = ? WHERE "name" = ?'
        assert payloads(params) == [99.9, 'Bob']

    def test_update_without_values_rejected(self):
        with pytest.raises(ValidationError):
            build_update('users', {}, [Condition('name', Op.EQ, 'Bob')])

    def test_delete(self):
        assert build_delete('users') == ('DELETE FROM "users"', [])
        sql, params = build_delete('users', [Condition('id', Op.LT, 3)])
        assert sql == 'DELETE FROM "users" WHERE "id" < ?'
        assert payloads(params) == [3]


class TestDDL:

    def test_create_table(self):
        columns = [
            ColumnDef('id', SQLType.INTEGER, primary_key=True, auto_increment=True),
            ColumnDef('title', SQLType.TEXT, not_null=True),
            ColumnDef('user_id', SQLType.INTEGER,
                      foreign_key=ForeignKey('users', 'id', on_delete_cascade=True)),
            ]
        assert build_create_table('posts', columns) == (
            'CREATE TABLE IF NOT EXISTS "posts" ('
            '"id" INTEGER PRIMARY KEY AUTOINCREMENT, '
            '"title" TEXT NOT NULL, '
            '"user_id" INTEGER, '
            'FOREIGN KEY("user_id") REFERENCES "users"("id") ON DELETE CASCADE)')

    def test_create_table_without_columns(self):
        with pytest.raises(ValidationError):
            build_create_table('empty', [])

    def test_create_index(self):
        assert build_create_index('idx_name', 'users', 'name', unique=True) == (
            'CREATE UNIQUE INDEX IF NOT EXISTS "idx_name" ON "users" ("name")')
        assert build_create_index('idx_score', 'users', 'score') == (
            'CREATE INDEX IF NOT EXISTS "idx_score" ON "users" ("score")')

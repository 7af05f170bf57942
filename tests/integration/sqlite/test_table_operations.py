"""
End-to-end table operations against an in-memory database.
"""
import numpy as np
import pandas as pd
import pytest
import sqldb
from sqldb import Condition, JoinClause, JoinType, Op, QueryOptions, SQLType
from sqldb.exceptions import ExecutionError, IntegrityError, PrepareError
from sqldb.exceptions import SchemaError, TypeMismatchError, ValidationError
from sqldb.types import ValueType
from tests.fixtures.models import User, UserInput


def test_insert_and_filtered_select(users, alice_and_bob):
    """Only Alice scores above 90"""
    rows = users.select([Condition('score', Op.GT, 90.0)])

    assert len(rows) == 1
    assert rows[0]['name'] == 'Alice'
    assert rows[0]['score'] == 95.5


def test_insert_returns_rowids(users, alice_and_bob):
    assert alice_and_bob == (1, 2)
    assert users.insert({'name': 'Carol', 'score': 70.0}) == 3


def test_update_then_select(users, alice_and_bob):
    changed = users.update({'score': 99.9}, [Condition('name', Op.EQ, 'Bob')])

    assert changed == 1
    bob = users.select([Condition('name', Op.EQ, 'Bob')])[0]
    assert bob['score'] == 99.9


def test_update_without_values(users, alice_and_bob):
    with pytest.raises(ValidationError):
        users.update({}, [Condition('name', Op.EQ, 'Bob')])


def test_remove(users, alice_and_bob):
    assert users.remove([Condition('name', Op.EQ, 'Alice')]) == 1
    assert [r['name'] for r in users.select()] == ['Bob']
    assert users.remove() == 1
    assert users.select() == []


def test_like(users, alice_and_bob):
    rows = users.select([Condition('name', Op.LIKE, 'A%')])
    assert [r['name'] for r in rows] == ['Alice']


def test_injection_attempt_is_data(users, alice_and_bob):
    evil = "Bob' OR '1'='1"
    assert users.select([Condition('name', Op.EQ, evil)]) == []
    users.insert({'name': evil, 'score': 1.0})
    assert users.select([Condition('name', Op.EQ, evil)])[0]['name'] == evil
    assert len(users.select()) == 3


def test_null_and_blob_values(db):
    files = db.define_table('files')
    files.add_column('id', SQLType.INTEGER, True, True) \
         .add_column('data', SQLType.BLOB) \
         .add_column('note', SQLType.TEXT) \
         .create()

    files.insert({'data': b'\x00\xffabc', 'note': None})
    row = files.select()[0]

    assert row['data'] == b'\x00\xffabc'
    assert row.value('data').type is ValueType.BLOB
    assert row['note'] is None
    assert row.value('note').is_null
    assert row.get_as('note', ValueType.INT32) is None


def test_get_as(users, alice_and_bob):
    row = users.select([Condition('name', Op.EQ, 'Alice')])[0]

    assert isinstance(row.get_as('id', ValueType.INT32), np.int32)
    assert row.get_as('score', ValueType.FLOAT32) == np.float32(95.5)
    with pytest.raises(TypeMismatchError):
        row.get_as('name', ValueType.INT64)


def test_numpy_values_are_bound(users):
    users.insert({'name': 'Numpy', 'score': np.float32(0.5)})
    users.update({'score': np.float64(1.25)}, [Condition('id', Op.EQ, np.int32(1))])
    assert users.select()[0]['score'] == 1.25


def test_reserved_word_identifiers(db):
    table = db.define_table('order')
    table.add_column('group', SQLType.TEXT) \
         .add_column('select', SQLType.INTEGER) \
         .create()

    table.insert({'group': 'a', 'select': 1})
    rows = table.select([Condition('group', Op.EQ, 'a')],
                        QueryOptions(order_by='select'))

    assert rows[0]['select'] == 1


def test_identifier_containing_quote(db):
    table = db.define_table('odd"name')
    table.add_column('we"ird', SQLType.TEXT).create()

    table.insert({'we"ird': 'value'})

    assert table.select([Condition('we"ird', Op.EQ, 'value')])[0]['we"ird'] == 'value'


def test_order_and_paging(users):
    for i, name in enumerate(['a', 'b', 'c', 'd', 'e']):
        users.insert({'name': name, 'score': float(i)})

    rows = users.select(options=QueryOptions(order_by='score', order_desc=True,
                                             limit=2, offset=1))
    assert [r['name'] for r in rows] == ['d', 'c']

    rows = users.select(options=QueryOptions(order_by='score', offset=3))
    assert [r['name'] for r in rows] == ['d', 'e']

    assert users.select(options=QueryOptions(limit=0)) == []


def test_projection(users, alice_and_bob):
    rows = users.select(options=QueryOptions(columns=['name']))
    assert [dict(r) for r in rows] == [{'name': 'Alice'}, {'name': 'Bob'}]


def test_join_group_having(users, posts, alice_and_bob):
    alice, bob = alice_and_bob
    posts.insert({'title': 'first', 'user_id': alice})
    posts.insert({'title': 'second', 'user_id': alice})
    posts.insert({'title': 'only', 'user_id': bob})

    options = QueryOptions(
        columns=['users.name', 'COUNT(posts.id)'],
        joins=[JoinClause(JoinType.INNER, 'posts', 'users.id = posts.user_id')],
        group_by=['users.name'],
        having=[Condition('COUNT(posts.id)', Op.GT, 1)],
        )
    rows = users.select(options=options)

    assert len(rows) == 1
    assert rows[0]['name'] == 'Alice'
    assert rows[0]['COUNT(posts.id)'] == 2


def test_left_join_keeps_unmatched(users, posts, alice_and_bob):
    alice, _ = alice_and_bob
    posts.insert({'title': 'first', 'user_id': alice})

    options = QueryOptions(
        columns=['users.name', 'posts.title'],
        joins=[JoinClause(JoinType.LEFT, 'posts', 'users.id = posts.user_id')],
        order_by='users.name',
        )
    rows = users.select(options=options)

    assert [(r['name'], r['title']) for r in rows] == [('Alice', 'first'), ('Bob', None)]


def test_unique_index_violation(users):
    users.create_index('idx_users_name', 'name', unique=True)
    users.insert({'name': 'Alice', 'score': 1.0})

    with pytest.raises(ExecutionError) as exc_info:
        users.insert({'name': 'Alice', 'score': 2.0})

    assert exc_info.value.operation == 'INSERT'
    assert 'UNIQUE' in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, IntegrityError)
    assert len(users.select()) == 1


def test_foreign_key_cascade(users, posts, alice_and_bob):
    alice, bob = alice_and_bob
    posts.insert({'title': 'a', 'user_id': alice})
    posts.insert({'title': 'b', 'user_id': bob})

    users.remove([Condition('id', Op.EQ, alice)])

    assert [r['title'] for r in posts.select()] == ['b']


def test_foreign_key_enforced(posts):
    with pytest.raises(ExecutionError) as exc_info:
        posts.insert({'title': 'orphan', 'user_id': 42})
    assert 'FOREIGN KEY' in str(exc_info.value)


def test_foreign_keys_disabled():
    with sqldb.connect(':memory:', enable_foreign_keys=False) as db:
        db.define_table('parents').add_column('id', SQLType.INTEGER, True).create()
        children = db.define_table('children')
        children.add_foreign_key('parent_id', SQLType.INTEGER, 'parents', 'id').create()

        children.insert({'parent_id': 42})

        assert children.select()[0]['parent_id'] == 42


def test_schema_errors(db, users):
    with pytest.raises(SchemaError):
        db.define_table('users')
    with pytest.raises(SchemaError):
        db.get_table('missing')
    with pytest.raises(SchemaError):
        users.add_column('extra', SQLType.TEXT)
    assert db.get_table('users') is users
    assert db.tables == ['users']

    table = db.define_table('dupes').add_column('a', SQLType.TEXT)
    with pytest.raises(SchemaError):
        table.add_column('a', SQLType.INTEGER)
    with pytest.raises(SchemaError):
        users.column('missing')


def test_prepare_error(db, users):
    with pytest.raises(PrepareError) as exc_info:
        db.select('SELEC * FROM users')
    assert exc_info.value.sql == 'SELEC * FROM users'

    with pytest.raises(PrepareError):
        db.select('SELECT * FROM nowhere')

    assert 'SELEC * FROM users' not in db.statement_cache


def test_raw_execute_and_select(db, users):
    assert db.execute('INSERT INTO users (name, score) VALUES (?, ?)', 'Dan', 3.5) == 1
    rows = db.select('SELECT name FROM users WHERE score > ?', 1)
    assert [r['name'] for r in rows] == ['Dan']


def test_select_frame(users, alice_and_bob):
    df = users.select_frame([Condition('score', Op.GT, 50.0)])

    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == ['id', 'name', 'score']
    assert df['name'].tolist() == ['Alice', 'Bob']

    empty = users.select_frame([Condition('score', Op.GT, 1000.0)])
    assert empty.empty
    assert list(empty.columns) == ['id', 'name', 'score']


def test_typed_query_and_insert(db, users, alice_and_bob):
    rowid = db.insert(UserInput(name='Carol', score=91.0))
    assert rowid == 3

    top = db.query(User, [Condition('score', Op.GT, 90.0)],
                   QueryOptions(order_by='id'))
    assert top == [User(1, 'Alice', 95.5), User(3, 'Carol', 91.0)]

    assert users.query(UserInput, [Condition('id', Op.EQ, 2)]) == [UserInput('Bob', 80.0)]


def test_insert_object_through_table(users):
    users.insert_object(UserInput(name='Eve', score=12.0))
    assert users.query(User) == [User(1, 'Eve', 12.0)]


def test_integer_beyond_64_bits_rejected(users):
    with pytest.raises(TypeMismatchError):
        users.insert({'name': 'Big', 'score': 2 ** 64})
    assert users.select() == []

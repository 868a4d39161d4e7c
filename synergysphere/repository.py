from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Type

import pymongo as mongo
from bson.objectid import ObjectId

from synergysphere.models.mongo_document_base import MongoDocumentBase, SimpleMongoDocumentBase
from synergysphere.util.common import ensure_object_id

logger = logging.getLogger(__name__)


class Collection(Enum):
    APPLICATION_LOG = 'application_log'
    USER = 'user'
    SESSION = 'session'
    PROJECT = 'project'
    TASK = 'task'
    MESSAGE = 'message'
    NOTIFICATION = 'notification'


INDEXES = {
    Collection.USER: [([('email', mongo.ASCENDING)], {'unique': True})],
    Collection.SESSION: [([('token', mongo.ASCENDING)], {'unique': True}),
                         ([('expiresAt', mongo.ASCENDING)], {})],
    Collection.PROJECT: [([('ownerId', mongo.ASCENDING)], {}),
                         ([('members.userId', mongo.ASCENDING)], {}),
                         ([('createdAt', mongo.DESCENDING)], {})],
    Collection.TASK: [([('projectId', mongo.ASCENDING), ('status', mongo.ASCENDING)], {}),
                      ([('assigneeId', mongo.ASCENDING), ('status', mongo.ASCENDING)], {}),
                      ([('dueDate', mongo.ASCENDING)], {}),
                      ([('dependencies.taskId', mongo.ASCENDING)], {})],
    Collection.MESSAGE: [([('projectId', mongo.ASCENDING), ('createdAt', mongo.DESCENDING)], {}),
                         ([('parentMessageId', mongo.ASCENDING)], {}),
                         ([('mentions', mongo.ASCENDING)], {})],
    Collection.NOTIFICATION: [([('recipientId', mongo.ASCENDING), ('isRead', mongo.ASCENDING),
                                ('createdAt', mongo.DESCENDING)], {}),
                              ([('expiresAt', mongo.ASCENDING)], {}),
                              ([('data.projectId', mongo.ASCENDING)], {})],
}


def _convert_id_arg(kwargs: dict) -> dict:
    """
    A special parameter, `id`, is converted from string to ObjectId and used in the query as `_id`.
    """
    if 'id' in kwargs:
        if kwargs['id'] is not None:
            kwargs['_id'] = ensure_object_id(kwargs['id'])
        del kwargs['id']
    return kwargs


def _as_type(document: Optional[dict], return_type: Optional[Type[SimpleMongoDocumentBase]]):
    if document is None or return_type is None:
        return document
    return return_type.from_dict(document, True)


class Repository:
    """
    Thin wrapper around a pymongo database.
    A single instance is shared by all services, see `get_instance`.
    """
    __instance = None

    def __init__(self, uri: str = None, default_db: str = None, database=None):
        self.__uri = uri
        self.__default_db = default_db
        self.__database = database

    @classmethod
    def get_instance(cls, **conn) -> Repository:
        if cls.__instance is None:
            cls.__instance = Repository(**conn)
        return cls.__instance

    def use(self, database) -> None:
        """
        Replaces the underlying database, e.g. with a mongomock database in tests.
        """
        self.__database = database

    @property
    def database(self):
        if self.__database is None:
            logger.info('Connecting to MongoDB database %s', self.__default_db)
            client = mongo.MongoClient(self.__uri)
            self.__database = client[self.__default_db]
        return self.__database

    def ensure_indexes(self) -> None:
        for collection, indexes in INDEXES.items():
            for keys, options in indexes:
                self.__get_collection(collection).create_index(keys, **options)

    def insert(self, collection: Collection, item: MongoDocumentBase, return_type=None):
        """
        Inserts a document into the given collection.
        Note that the _id field will be ignored on insertion
        :param collection: Collection to insert into
        :param item: the item to insert
        :param return_type: dataclass to convert the result into, dict if omitted
        :return: the inserted item with its given id
        """
        d = item.as_dict() if isinstance(item, SimpleMongoDocumentBase) else dict(item)
        # MongoDB assigns the id
        if '_id' in d:
            del d['_id']

        result = self.__get_collection(collection).insert_one(d)
        if result.acknowledged:
            return self.find_one(collection, return_type, _id=result.inserted_id)

    def find(self, collection: Collection, return_type=None, sort: list = None, skip: int = 0,
             limit: int = 0, projection: dict = None, **kwargs) -> list:
        """
        Find all items matching the query in kwargs.
        Note that `_id` must be of type ObjectId if used.
        :param collection: collection to search
        :param return_type: dataclass to convert each item into, dicts if omitted
        :param sort: list of (key, direction) pairs
        :param skip: number of items to skip
        :param limit: maximum number of items, 0 for no limit
        :param projection: fields to include or exclude
        :param kwargs: search params in key-value form
        :return: the resulting list of items
        """
        cursor = self.__get_collection(collection).find(_convert_id_arg(kwargs), projection)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [_as_type(d, return_type) for d in cursor]

    def find_one(self, collection: Collection, return_type=None, **kwargs):
        """
        Find the first item that matches the query in kwargs.
        :param collection: collection to search
        :param return_type: dataclass to convert the item into, dict if omitted
        :param kwargs: search params in key-value form
        :return: the first item matching the query, or None
        """
        return _as_type(self.__get_collection(collection).find_one(_convert_id_arg(kwargs)), return_type)

    def count(self, collection: Collection, **kwargs) -> int:
        return self.__get_collection(collection).count_documents(_convert_id_arg(kwargs))

    def delete(self, collection: Collection, **kwargs) -> bool:
        """
        Delete the first item that matches the query in kwargs.
        :return: True if an item was deleted, otherwise False
        """
        delete_result = self.__get_collection(collection).delete_one(_convert_id_arg(kwargs))
        return delete_result.deleted_count > 0

    def delete_many(self, collection: Collection, **kwargs) -> int:
        return self.__get_collection(collection).delete_many(_convert_id_arg(kwargs)).deleted_count

    def update(self, collection: Collection, item: MongoDocumentBase, return_type=None):
        """
        Replaces the values of a document with those of the given item.
        Document is found by _id
        :param collection: collection to query
        :param item: item to update
        :param return_type: dataclass to convert the result into
        :return: updated item
        """
        query = {'_id': item.id}
        values = item.as_dict()
        del values['_id']
        self.__get_collection(collection).update_one(query, {'$set': values})
        return self.find_one(collection, return_type, _id=item.id)

    def update_one(self, collection: Collection, document_id: ObjectId, values: dict) -> bool:
        """
        Applies an update document (e.g. {'$set': ...}) to a single document.
        :return: True if a document matched
        """
        result = self.__get_collection(collection).update_one({'_id': ensure_object_id(document_id)}, values)
        return result.matched_count > 0

    def update_many(self, collection: Collection, query: dict, values: dict) -> int:
        return self.__get_collection(collection).update_many(query, values).modified_count

    def push(self, collection: Collection, document_id: ObjectId, field_name: str, item) -> bool:
        """
        Inserts an item into a list on a document.
        :param collection: collection to query
        :param document_id: document id
        :param field_name: list field on document
        :param item: item to append
        :return: True if a document was modified
        """
        if isinstance(item, SimpleMongoDocumentBase):
            item = item.as_dict()

        update_result = self.__get_collection(collection).update_one(
            {'_id': ensure_object_id(document_id)},
            {'$push': {field_name: item}}
        )
        return update_result.modified_count > 0

    def pull(self, collection: Collection, document_id: ObjectId, field_name: str, item) -> bool:
        """
        Removes an item from a list on a document.
        :param collection: collection to query
        :param document_id: document id
        :param field_name: list field on document
        :param item: value or condition matching the items to remove
        :return: True if a document was modified
        """
        update_result = self.__get_collection(collection).update_one(
            {'_id': ensure_object_id(document_id)},
            {'$pull': {field_name: item}}
        )
        return update_result.modified_count > 0

    def join(self,
             local_collection: Collection,
             local_field: str,
             foreign_collection: Collection,
             foreign_field: str,
             to_field: str,
             unwind: bool = False,
             **match_args) -> list:
        """
        Returns results from the `local_collection` with the matching documents in the `foreign_collection`
        as sub-documents.

        Equivalent to a left outer join.

        If `unwind` is True, an unwind step on to_field is added to the pipeline.
        A filter step will be added to the beginning of the pipeline if filtering arguments are added to
        `match_args`.

        :param local_collection: collection add sub-documents to
        :param local_field: field to join on in local collection
        :param foreign_collection: collection to join
        :param foreign_field: field to join on in foreign collection
        :param to_field: field containing the results of the join
        :param unwind: if true, unwinds on to_field
        :param match_args: arguments to filter local collection by
        :return: list of resulting documents
        """
        match_args = _convert_id_arg(match_args)

        pipeline = [
            {
                '$lookup': {
                    'from': foreign_collection.value,
                    'localField': local_field,
                    'foreignField': foreign_field,
                    'as': to_field
                }
            }
        ]

        if match_args:
            pipeline.insert(0, {'$match': match_args})
        if unwind:
            pipeline.append({'$unwind': f'${to_field}'})

        result = self.__get_collection(local_collection).aggregate(pipeline)
        return list(result)

    def __get_collection(self, collection: Collection):
        return self.database[collection.value]

"""DynamoDB-backed store for volunteer events."""
import logging
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from processor.models import DomainEvent, EventFields

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class EventStore:
    """Event table access used by the crawler."""

    SOURCE_URL_INDEX = 'source-url-index'
    # Never rewritten by an update
    IMMUTABLE_FIELDS = ('id', 'source_url', 'created_at')

    def __init__(self, table_name: str, dynamodb: Optional[Any] = None):
        """
        Initialize DynamoDB resource and table reference.

        Args:
            table_name: Name of the DynamoDB table
            dynamodb: Optional boto3 DynamoDB resource
        """
        self.table_name = table_name
        self.dynamodb = dynamodb or boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized EventStore for table: {table_name}")

    def find_event_by_source_url(self, source_url: str) -> Optional[DomainEvent]:
        """
        Look up the event imported from a given page.

        Args:
            source_url: Canonical detail URL of the event

        Returns:
            DomainEvent or None if no event has this source URL
        """
        response = self.table.query(
            IndexName=self.SOURCE_URL_INDEX,
            KeyConditionExpression=Key('source_url').eq(source_url),
        )
        items = response.get('Items', [])
        if not items:
            return None
        if len(items) > 1:
            logger.warning(f"{len(items)} events share source URL {source_url}, using the first")
        return self._item_to_event(items[0])

    def create_event(self, fields: EventFields) -> DomainEvent:
        """
        Insert a new event.

        Args:
            fields: Event fields

        Returns:
            The stored DomainEvent with its assigned id
        """
        now = _utc_now()
        item = {k: v for k, v in self._fields_to_item(fields).items() if v is not None}
        item['id'] = str(uuid.uuid4())
        item['created_at'] = now
        item['updated_at'] = now

        self.table.put_item(
            Item=item,
            ConditionExpression=Attr('id').not_exists(),
        )
        logger.debug(f"Created event {item['id']} for {fields.source_url}")
        return self._item_to_event(item)

    def update_event(self, event_id: str, fields: EventFields) -> DomainEvent:
        """
        Overwrite the mutable fields of an existing event.

        Args:
            event_id: Store id of the event
            fields: New field values (source_url is ignored)

        Returns:
            The updated DomainEvent

        Raises:
            ClientError: If the event does not exist or the write fails
        """
        item = self._fields_to_item(fields)
        item['updated_at'] = _utc_now()
        for name in self.IMMUTABLE_FIELDS:
            item.pop(name, None)

        names = {}
        values = {}
        assignments = []
        removals = []
        for index, (name, value) in enumerate(sorted(item.items())):
            names[f"#f{index}"] = name
            if value is None:
                removals.append(f"#f{index}")
            else:
                values[f":val{index}"] = value
                assignments.append(f"#f{index} = :val{index}")

        expression = 'SET ' + ', '.join(assignments)
        if removals:
            expression += ' REMOVE ' + ', '.join(removals)

        response = self.table.update_item(
            Key={'id': event_id},
            UpdateExpression=expression,
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
            ConditionExpression=Attr('id').exists(),
            ReturnValues='ALL_NEW',
        )
        logger.debug(f"Updated event {event_id}")
        return self._item_to_event(response['Attributes'])

    def get_imported_events(self) -> List[DomainEvent]:
        """
        Retrieve every event that came from the official site.

        Returns:
            List of DomainEvent objects with a source URL
        """
        scan_kwargs = {'FilterExpression': Attr('source_url').exists()}
        try:
            response = self.table.scan(**scan_kwargs)
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'], **scan_kwargs
                )
                items.extend(response.get('Items', []))
        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

        return [self._item_to_event(item) for item in items]

    def count_imported_events(self) -> int:
        return len(self.get_imported_events())

    def get_last_imported(self) -> Optional[Dict[str, str]]:
        """
        Name and update time of the most recently updated imported event.

        Returns:
            Dict with 'name' and 'updated_at', or None if nothing was imported
        """
        events = self.get_imported_events()
        if not events:
            return None
        latest = max(events, key=lambda event: event.updated_at)
        return {'name': latest.name, 'updated_at': latest.updated_at}

    def close(self) -> None:
        self.dynamodb.meta.client.close()

    def _fields_to_item(self, fields: EventFields) -> dict:
        item = asdict(fields)
        if not item.get('image_url'):
            item['image_url'] = None
        return item

    def _item_to_event(self, item: dict) -> DomainEvent:
        return DomainEvent(
            id=item['id'],
            date=item['date'],
            name=item['name'],
            description=item['description'],
            arrival_time=item['arrival_time'],
            departure_time=item['departure_time'],
            expected_audience=int(item['expected_audience']),
            required_volunteers=int(item['required_volunteers']),
            season=int(item['season']),
            comments=item.get('comments', ''),
            price=item.get('price', ''),
            source_url=item['source_url'],
            image_url=item.get('image_url'),
            created_at=item['created_at'],
            updated_at=item['updated_at'],
        )

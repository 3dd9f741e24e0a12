"""GraphQL analytics queries used by the metrics collector."""

from __future__ import annotations

WORKER_METRICS = """
query WorkerMetrics($accountTag: string!, $scriptName: string!, $start: Time!, $end: Time!) {
  viewer {
    accounts(filter: {accountTag: $accountTag}) {
      workersInvocationsAdaptive(
        limit: 10000
        filter: {scriptName: $scriptName, datetime_geq: $start, datetime_leq: $end}
      ) {
        sum { requests errors subrequests cpuTimeUs }
        quantiles { wallTimeP99 }
      }
    }
  }
}
"""

R2_METRICS = """
query R2Metrics(
  $accountTag: string!, $bucketName: string!,
  $start: Time!, $end: Time!, $storageStart: Time!
) {
  viewer {
    accounts(filter: {accountTag: $accountTag}) {
      storage: r2StorageAdaptiveGroups(
        limit: 1
        filter: {bucketName: $bucketName, datetime_geq: $storageStart, datetime_leq: $end}
        orderBy: [datetime_DESC]
      ) {
        max { objectCount payloadSize metadataSize }
      }
      operations: r2OperationsAdaptiveGroups(
        limit: 10000
        filter: {bucketName: $bucketName, datetime_geq: $start, datetime_leq: $end}
      ) {
        sum { requests }
        dimensions { actionType }
      }
    }
  }
}
"""

D1_METRICS = """
query D1Metrics(
  $accountTag: string!, $databaseId: string!,
  $start: Time!, $end: Time!, $slowMs: float64!
) {
  viewer {
    accounts(filter: {accountTag: $accountTag}) {
      usage: d1AnalyticsAdaptiveGroups(
        limit: 10000
        filter: {databaseId: $databaseId, datetime_geq: $start, datetime_leq: $end}
      ) {
        sum { readQueries writeQueries rowsRead rowsWritten queryBatchTimeMs }
      }
      slow: d1QueriesAdaptiveGroups(
        limit: 10000
        filter: {
          databaseId: $databaseId, datetime_geq: $start, datetime_leq: $end,
          queryDurationMs_gt: $slowMs
        }
      ) {
        count
      }
    }
  }
}
"""

KV_METRICS = """
query KVMetrics(
  $accountTag: string!, $namespaceId: string!,
  $start: Time!, $end: Time!, $storageStart: Date!
) {
  viewer {
    accounts(filter: {accountTag: $accountTag}) {
      operations: kvOperationsAdaptiveGroups(
        limit: 10000
        filter: {namespaceId: $namespaceId, datetime_geq: $start, datetime_leq: $end}
      ) {
        sum { requests }
        dimensions { actionType }
      }
      storage: kvStorageAdaptiveGroups(
        limit: 1
        filter: {namespaceId: $namespaceId, date_geq: $storageStart}
        orderBy: [date_DESC]
      ) {
        max { keyCount byteCount }
      }
    }
  }
}
"""

DURABLE_OBJECT_METRICS = """
query DurableObjectMetrics($accountTag: string!, $namespaceId: string!, $start: Time!, $end: Time!) {
  viewer {
    accounts(filter: {accountTag: $accountTag}) {
      invocations: durableObjectsInvocationsAdaptiveGroups(
        limit: 10000
        filter: {namespaceId: $namespaceId, datetime_geq: $start, datetime_leq: $end}
      ) {
        sum { requests errors }
      }
      periodic: durableObjectsPeriodicGroups(
        limit: 10000
        filter: {namespaceId: $namespaceId, datetime_geq: $start, datetime_leq: $end}
      ) {
        sum { activeTime }
      }
    }
  }
}
"""

# R2 operations billed as Class A (mutating / listing) and Class B (reads).
R2_CLASS_A_ACTIONS = frozenset({
    "ListBuckets",
    "PutBucket",
    "ListObjects",
    "PutObject",
    "CopyObject",
    "CompleteMultipartUpload",
    "CreateMultipartUpload",
    "ListMultipartUploads",
    "UploadPart",
    "UploadPartCopy",
    "ListParts",
    "PutBucketEncryption",
    "PutBucketCors",
    "PutBucketLifecycleConfiguration",
    "LifecycleStorageTierTransition",
})

R2_CLASS_B_ACTIONS = frozenset({
    "HeadBucket",
    "HeadObject",
    "GetObject",
    "UsageSummary",
    "GetBucketEncryption",
    "GetBucketLocation",
    "GetBucketCors",
    "GetBucketLifecycleConfiguration",
})

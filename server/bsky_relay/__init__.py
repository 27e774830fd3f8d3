"""
Bluesky Relay

Watches the Bluesky Jetstream firehose for posts mentioning a watch-word and
forwards them to a Slack incoming webhook.

Architecture:
    Jetstream (external) -> jetstream client -> decoder -> dispatcher
        -> profile enricher -> richtext segmenter -> formatter -> webhook

Components:
    - jetstream: connection supervisor, frame decoder, event normalizer
    - bluesky: XRPC client and author profile enrichment
    - richtext: facet segmentation and Slack markup rendering
    - notifier: message formatting and webhook delivery
    - dispatcher: per-match delivery tasks
"""

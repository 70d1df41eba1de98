"""
JavaScript evaluated in the page by the video probe.

Each invocation keeps its state in ``window.__webprobe[<probe id>]`` so that
concurrent or repeated probes on one page never share a record. Scripts that
take arguments receive them as a single array and destructure it.
"""

PLAY_CONTROL_SELECTOR = ", ".join(
    [
        'button[aria-label*="Play"]',
        'button[class*="play"]',
        ".play-button",
        '[data-testid*="play"]',
        ".wistia_click_to_play",
        ".video-play-button",
    ]
)

WISTIA_CONTAINER_SELECTOR = "wistia-player[media-id], [wistia-id], .wistia_embed"

GENERIC_CONTAINER_SELECTOR = ", ".join(
    [
        ".video-container",
        ".player-container",
        "[data-video]",
        '[class*="wistia"]',
        'iframe[src*="wistia"]',
        'iframe[src*="youtube"]',
        'iframe[src*="vimeo"]',
    ]
)

INSPECT_PAGE = """
() => ({
  videos: document.querySelectorAll('video').length,
  iframes: document.querySelectorAll('iframe').length,
  wistiaPlayers: document.querySelectorAll('wistia-player').length,
  wistiaApi: !!(window.Wistia && typeof window.Wistia.api === 'function'),
  title: document.title
})
"""

DETECT_NATIVE = "() => !!document.querySelector('video')"

DETECT_WISTIA = """
() => {
  const player = document.querySelector('wistia-player[media-id]');
  if (player) return player.getAttribute('media-id');
  const host = document.querySelector('[wistia-id]');
  if (host) return host.getAttribute('wistia-id');
  const ld = document.querySelector('script[class*="w-json-ld"]');
  if (ld && ld.id) {
    const m = ld.id.match(/wistia-([a-z0-9]+)/);
    if (m) return m[1];
  }
  return null;
}
"""

DETECT_SELECTOR = "([selector]) => !!document.querySelector(selector)"

INSTALL_RECORD = """
([id, kind]) => {
  const root = (window.__webprobe = window.__webprobe || {});
  if (root[id]) return false;
  root[id] = { kind: kind, ready: false, createdAt: Date.now() };
  return true;
}
"""

RELEASE_RECORD = """
([id]) => {
  const root = window.__webprobe;
  if (!root || !root[id]) return false;
  delete root[id];
  return true;
}
"""

BIND_NATIVE = """
([id]) => {
  const rec = window.__webprobe && window.__webprobe[id];
  if (!rec) return false;
  if (!rec.el) {
    const el = document.querySelector('video');
    if (!el) return false;
    rec.el = el;
    try { el.muted = true; } catch (e) {}
    try { el.scrollIntoView({ block: 'center' }); } catch (e) {}
  }
  rec.ready = true;
  return true;
}
"""

INSTALL_WISTIA_HOOK = """
([id, mediaId]) => {
  const rec = window.__webprobe && window.__webprobe[id];
  if (!rec) return false;
  if (rec.hooked) return true;
  rec.mediaId = mediaId;
  rec.hooked = true;
  window._wq = window._wq || [];
  window._wq.push({
    id: mediaId,
    onReady: (video) => {
      rec.video = video;
      rec.ready = true;
      try { video.mute(); } catch (e) {}
    }
  });
  return true;
}
"""

WISTIA_READY = """
([id]) => {
  const rec = window.__webprobe && window.__webprobe[id];
  return !!(rec && rec.video);
}
"""

WISTIA_API_BIND = """
([id]) => {
  const rec = window.__webprobe && window.__webprobe[id];
  if (!rec || !rec.mediaId) return false;
  const W = window.Wistia;
  if (!W || typeof W.api !== 'function') return false;
  const video = W.api(rec.mediaId);
  if (!video) return false;
  rec.video = video;
  rec.ready = true;
  return true;
}
"""

READ_TIME = """
([id]) => {
  const rec = window.__webprobe && window.__webprobe[id];
  if (!rec) return null;
  if (rec.video && typeof rec.video.time === 'function') {
    return Number(rec.video.time()) || 0;
  }
  if (rec.el) return rec.el.currentTime;
  return null;
}
"""

PLAY = """
([id]) => {
  const rec = window.__webprobe && window.__webprobe[id];
  if (!rec) throw new Error('probe record missing');
  const target = rec.video || rec.el;
  if (!target) throw new Error('no playback surface bound');
  const p = target.play();
  if (p && typeof p.catch === 'function') p.catch(() => {});
  return true;
}
"""

PAUSE = """
([id]) => {
  const rec = window.__webprobe && window.__webprobe[id];
  if (!rec) throw new Error('probe record missing');
  const target = rec.video || rec.el;
  if (!target) throw new Error('no playback surface bound');
  target.pause();
  return true;
}
"""

IS_PAUSED = """
([id]) => {
  const rec = window.__webprobe && window.__webprobe[id];
  if (!rec) return null;
  const v = rec.video;
  if (v) {
    if (typeof v.isPaused === 'function') return !!v.isPaused();
    if (typeof v.state === 'function') return v.state() !== 'playing';
    return true;
  }
  return rec.el ? !!rec.el.paused : null;
}
"""

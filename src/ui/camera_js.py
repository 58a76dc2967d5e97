JS_CAMERA_CODE = """
<script>
window.raffleStreams = window.raffleStreams || {};
window.raffle_camera_js_loaded = true;

function raffleStopCamera(videoId) {
    const stream = window.raffleStreams[videoId];
    if (stream) {
        stream.getTracks().forEach(track => track.stop());
        delete window.raffleStreams[videoId];
    }
    const video = document.getElementById(videoId);
    if (video) video.srcObject = null;
    return true;
}

async function raffleStartCamera(videoId, constraints) {
    const video = document.getElementById(videoId);
    if (!video) return { ok: false, error: 'Video element not found' };
    if (!navigator.mediaDevices || !navigator.mediaDevices.getUserMedia) {
        return { ok: false, error: 'NotFoundError: Camera API not available' };
    }

    raffleStopCamera(videoId);

    try {
        const stream = await navigator.mediaDevices.getUserMedia(constraints);
        window.raffleStreams[videoId] = stream;
        video.srcObject = stream;

        // Wait for metadata so videoWidth/videoHeight are known
        await new Promise((resolve, reject) => {
            if (video.readyState >= 1) { resolve(); return; }
            video.onloadedmetadata = () => resolve();
            video.onerror = () => reject(new Error('Video failed to load'));
        });
        await video.play();

        return { ok: true, width: video.videoWidth, height: video.videoHeight };
    } catch (err) {
        raffleStopCamera(videoId);
        let message = 'Camera access failed';
        if (err) {
            message = (err.name ? err.name + ': ' : '') + (err.message || '');
        }
        return { ok: false, error: message };
    }
}

function raffleCaptureFrame(videoId) {
    const video = document.getElementById(videoId);
    if (!video || video.readyState < 2 || !video.videoWidth) return null;

    const canvas = document.createElement('canvas');
    canvas.width = video.videoWidth;
    canvas.height = video.videoHeight;
    canvas.getContext('2d').drawImage(video, 0, 0);
    return canvas.toDataURL('image/jpeg', 0.92);
}

function raffleScanLayout(videoId, guideId) {
    const video = document.getElementById(videoId);
    const guide = document.getElementById(guideId);
    if (!video || !guide || !video.videoWidth) return null;

    const v = video.getBoundingClientRect();
    const g = guide.getBoundingClientRect();
    return {
        videoWidth: video.videoWidth,
        videoHeight: video.videoHeight,
        video: { left: v.left, top: v.top, width: v.width, height: v.height },
        guide: { left: g.left, top: g.top, width: g.width, height: g.height }
    };
}
</script>
"""

CAMERA_CSS = """
<style>
.raffle-camera { position: relative; width: 100%; height: 60vh; background: black; overflow: hidden; }
.raffle-camera video { width: 100%; height: 100%; object-fit: cover; }
.raffle-guide { position: absolute; border: 2px dashed #00ff66; box-shadow: 0 0 0 9999px rgba(0, 0, 0, 0.35); }
.raffle-guide.ticket { left: 10%; top: 35%; width: 80%; height: 30%; }
.raffle-guide.qr { left: 20%; top: 15%; width: 60%; height: 70%; }
</style>
"""
